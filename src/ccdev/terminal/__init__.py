"""Interactive terminal sessions over WebSocket."""

from ccdev.terminal.registry import TerminalRegistry
from ccdev.terminal.session import SessionState, TerminalSession

__all__ = ["SessionState", "TerminalRegistry", "TerminalSession"]
