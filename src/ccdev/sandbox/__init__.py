"""Sandboxed execution gateway for ccdev."""

from ccdev.sandbox.executor import ExecutionResult, SandboxExecutor, create_executor
from ccdev.sandbox.policy import build_policy
from ccdev.sandbox.pool import SandboxPool

__all__ = ["ExecutionResult", "SandboxExecutor", "SandboxPool", "build_policy", "create_executor"]
