"""ccdev: the core of a web coding assistant (agent loop, sandbox tools, terminal sessions)."""

__version__ = "0.1.0"
