"""Agent core: conversation, loop, configuration."""
