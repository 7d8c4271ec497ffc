"""Auracle - terminal AI coding assistant with mediated tool execution."""

__version__ = "0.1.0"
