"""Shared application state handed to the route modules."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from ccdev.providers.anthropic import AnthropicProvider
from ccdev.sandbox.pool import SandboxPool
from ccdev.terminal.registry import TerminalRegistry
from ccdev.types.config import AppConfig
from ccdev.types.providers import ProviderAdapter

ProviderFactory = Callable[[str, str], ProviderAdapter]


def anthropic_provider_factory(model: str, api_key: str) -> ProviderAdapter:
    return AnthropicProvider(api_key=api_key, model=model)


@dataclass(slots=True)
class AppState:
    config: AppConfig
    sandboxes: SandboxPool
    terminals: TerminalRegistry
    provider_factory: ProviderFactory = anthropic_provider_factory
