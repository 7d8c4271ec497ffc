"""Wire configuration into a ready-to-use Brain."""

from __future__ import annotations

import logging
from typing import Optional

from auracle.config import Settings
from auracle.mcp import MCPProvider, MCPServerConfig
from auracle.orchestrator import (
    Brain,
    ModelClient,
    OpenAIModelClient,
    SnapshotSource,
    SystemMonitor,
    WindowMemory,
)
from auracle.security import Enclave, PolicyEngine
from auracle.tools import Permission, ToolRegistry
from auracle.tools.executor import ToolExecutor
from auracle.tools.providers import ExtensionProvider, MetaProvider, SystemProvider

logger = logging.getLogger(__name__)


def build_policy(settings: Settings) -> PolicyEngine:
    """Create the policy engine from the security section."""
    security = settings.security
    return PolicyEngine(
        allowed=[Permission(p) for p in security.allowed_permissions],
        denied=[Permission(p) for p in security.denied_permissions],
        allow_sensitive=security.allow_sensitive,
    )


def build_enclave(settings: Settings) -> Enclave:
    return Enclave(settings.data_dir)


def build_model(settings: Settings) -> OpenAIModelClient:
    model = settings.model
    return OpenAIModelClient(
        model_id=model.model_id,
        api_key=settings.openai_api_key,
        base_url=model.base_url,
        provider=model.provider,
        max_tokens=model.max_tokens,
        temperature=model.temperature,
        timeout=model.request_timeout,
    )


def build_registry(
    settings: Settings,
    policy: PolicyEngine,
    monitor: SnapshotSource,
    working_directory: Optional[str] = None,
) -> ToolRegistry:
    """Create a registry with every configured provider.

    The registry is empty until ``sync`` runs.
    """
    registry = ToolRegistry()
    registry.register_provider(
        SystemProvider(
            monitor,
            guard=policy.check_path,
            working_directory=working_directory,
            shell_timeout=settings.shell.timeout,
            max_output_length=settings.shell.max_output_length,
        )
    )
    registry.register_provider(MetaProvider(registry))
    if settings.extensions:
        registry.register_provider(
            ExtensionProvider(settings.extensions, default_timeout=settings.shell.timeout)
        )
    for server in settings.mcp_servers:
        registry.register_provider(MCPProvider(MCPServerConfig.from_settings(server)))
    return registry


def build_brain(
    settings: Settings,
    model: Optional[ModelClient] = None,
    monitor: Optional[SnapshotSource] = None,
    enclave: Optional[Enclave] = None,
    working_directory: Optional[str] = None,
) -> Brain:
    """Assemble the policy, enclave, registry, executor and collaborators.

    Args:
        settings: Application settings.
        model: Model client override (default: built from settings).
        monitor: Snapshot source override (default: psutil-backed).
        enclave: Enclave override (default: one rooted at the data directory).
        working_directory: Base directory for file and command tools.
    """
    policy = build_policy(settings)
    enclave = enclave or build_enclave(settings)
    enclave.install(policy)

    monitor = monitor or SystemMonitor(working_directory)
    registry = build_registry(settings, policy, monitor, working_directory)
    executor = ToolExecutor(
        registry,
        policy,
        default_timeout=settings.shell.timeout,
        max_output_length=settings.shell.max_output_length,
    )

    logger.debug(
        f"Brain ready: {len(registry.providers)} providers, "
        f"allowed={sorted(p.value for p in policy.allowed_permissions)}"
    )
    return Brain(
        registry=registry,
        executor=executor,
        policy=policy,
        model=model or build_model(settings),
        monitor=monitor,
        memory=WindowMemory(max_items=settings.agent.memory_window),
        max_turns=settings.agent.max_turns,
        core_tool_names=list(settings.agent.core_tools),
        session_id=settings.agent.session_id,
    )


async def shutdown(brain: Brain) -> None:
    """Stop any tool servers the registry launched."""
    for provider in brain.registry.providers:
        if isinstance(provider, MCPProvider):
            await provider.close()
