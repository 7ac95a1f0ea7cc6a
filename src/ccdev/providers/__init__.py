"""Model provider adapters for ccdev."""

from ccdev.providers.anthropic import AnthropicProvider
from ccdev.providers.base import BaseProvider

__all__ = ["AnthropicProvider", "BaseProvider"]
