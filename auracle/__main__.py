"""Entry point for running Auracle as a module."""

from auracle.cli import app


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
