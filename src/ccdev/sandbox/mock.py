"""MockSandbox: deterministic in-memory stand-in when no backend is configured."""

from __future__ import annotations

import posixpath
from collections.abc import Mapping

from ccdev.errors import SandboxError, SandboxFileNotFoundError
from ccdev.sandbox.executor import (
    ExecutionResult,
    OutputCallback,
    SandboxExecutor,
    check_deletable,
    sort_entries,
)
from ccdev.types.sandbox import FileEntry, SandboxPolicy
from ccdev.types.tools import Language

MOCK_LABEL = "[mock sandbox]"

# Demo project served by a fresh mock workspace, relative to the workspace root.
SEED_FILES: dict[str, str] = {
    "README.md": (
        "# ccdev Sandbox\n\nWelcome to the ccdev sandbox environment.\n\n"
        "## Getting Started\n\n1. Write your code\n2. Run in the terminal\n3. Iterate!\n"
    ),
    "package.json": (
        '{\n  "name": "sandbox-project",\n  "version": "1.0.0",\n'
        '  "description": "A sandbox project",\n  "main": "src/index.ts",\n'
        '  "scripts": {\n    "start": "ts-node src/index.ts"\n  }\n}\n'
    ),
    "tsconfig.json": (
        '{\n  "compilerOptions": {\n    "target": "ES2020",\n    "module": "commonjs",\n'
        '    "strict": true,\n    "outDir": "./dist"\n  }\n}\n'
    ),
    "src/index.ts": (
        'console.log("Hello from ccdev sandbox!");\n\nimport { greet } from "./utils";\n\n'
        'const name = "World";\nconsole.log(greet(name));\n'
    ),
    "src/utils.ts": (
        "export function greet(name: string): string {\n  return `Hello, ${name}!`;\n}\n\n"
        "export function add(a: number, b: number): number {\n  return a + b;\n}\n"
    ),
    "src/types.ts": (
        "export interface User {\n  id: string;\n  name: string;\n  email: string;\n}\n\n"
        'export type Role = "admin" | "user" | "guest";\n'
    ),
}

SEED_DIRS = ("/", "/home", "/tmp")


class MockSandbox(SandboxExecutor):
    """Sandbox that executes nothing and keeps files in memory.

    Commands and code return clearly labelled placeholder output with exit
    code 0. The filesystem starts from a small demo project and is fully
    writable, so file tools behave consistently within one sandbox id.
    """

    is_mock = True

    def __init__(self, policy: SandboxPolicy, sandbox_id: str = "default") -> None:
        super().__init__(policy, sandbox_id)
        self._files: dict[str, str] = {}
        self._dirs: set[str] = set(SEED_DIRS)
        self._add_dir(self.workspace_root)
        for relative, content in SEED_FILES.items():
            self._put(posixpath.join(self.workspace_root, relative), content)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run_command(
        self,
        command: str,
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        timeout_sec: float | None = None,
        on_output: OutputCallback | None = None,
        stdin: bytes | None = None,
    ) -> ExecutionResult:
        error = self.validate_command(command)
        if error:
            return ExecutionResult(stdout="", stderr=error + "\n", exit_code=1)
        stdout = (
            f"{MOCK_LABEL} $ {command}\n"
            f"{MOCK_LABEL} no sandbox backend is configured; the command was not executed.\n"
        )
        if on_output is not None:
            await on_output(stdout)
        return ExecutionResult(stdout=stdout)

    async def run_code(
        self,
        code: str,
        language: Language | str,
        *,
        timeout_sec: float | None = None,
    ) -> ExecutionResult:
        lang = Language(language)
        lines = code.count("\n") + 1 if code else 0
        return ExecutionResult(
            stdout=(
                f"{MOCK_LABEL} {lang.value} code received ({lines} lines).\n"
                f"{MOCK_LABEL} no sandbox backend is configured; the code was not executed.\n"
            ),
        )

    # ------------------------------------------------------------------
    # In-memory filesystem
    # ------------------------------------------------------------------

    def is_dir(self, path: str) -> bool:
        return path in self._dirs

    def is_file(self, path: str) -> bool:
        return path in self._files

    def _add_dir(self, path: str) -> None:
        missing: list[str] = []
        while path not in self._dirs:
            if path in self._files:
                raise SandboxError(f"Not a directory: {path}")
            missing.append(path)
            path = posixpath.dirname(path)
        self._dirs.update(missing)

    def _put(self, path: str, content: str) -> None:
        if path in self._dirs:
            raise SandboxError(f"Is a directory: {path}")
        self._add_dir(posixpath.dirname(path))
        self._files[path] = content

    async def read_file(self, path: str, *, timeout_sec: float | None = None) -> str:
        target = self.resolve_path(path)
        if target not in self._files:
            raise SandboxFileNotFoundError(f"No such file or directory: {target}")
        return self._files[target]

    async def write_file(
        self, path: str, content: str, *, timeout_sec: float | None = None,
    ) -> None:
        self._put(self.resolve_path(path), content)

    async def list_files(
        self, path: str | None = None, *, timeout_sec: float | None = None,
    ) -> list[FileEntry]:
        target = self.resolve_path(path)
        if target not in self._dirs:
            raise SandboxFileNotFoundError(f"No such file or directory: {target}")
        entries = [
            FileEntry(name=posixpath.basename(d), path=d, type="directory")
            for d in self._dirs
            if d != "/" and posixpath.dirname(d) == target
        ]
        entries.extend(
            FileEntry(
                name=posixpath.basename(f),
                path=f,
                type="file",
                size=len(content.encode("utf-8")),
            )
            for f, content in self._files.items()
            if posixpath.dirname(f) == target
        )
        return sort_entries(entries)

    async def mkdir(
        self, path: str, recursive: bool = True, *, timeout_sec: float | None = None,
    ) -> None:
        target = self.resolve_path(path)
        if target in self._files:
            raise SandboxError(f"File exists: {target}")
        if not recursive:
            if target in self._dirs:
                raise SandboxError(f"File exists: {target}")
            if posixpath.dirname(target) in self._files:
                raise SandboxError(f"Not a directory: {posixpath.dirname(target)}")
            if posixpath.dirname(target) not in self._dirs:
                raise SandboxFileNotFoundError(f"No such file or directory: {posixpath.dirname(target)}")
        self._add_dir(target)

    async def delete_file(self, path: str, *, timeout_sec: float | None = None) -> None:
        target = self.resolve_path(path)
        check_deletable(target, self.workspace_root)
        if target in self._files:
            del self._files[target]
            return
        if target not in self._dirs:
            raise SandboxFileNotFoundError(f"No such file or directory: {target}")
        prefix = target.rstrip("/") + "/"
        self._dirs = {d for d in self._dirs if d != target and not d.startswith(prefix)}
        self._files = {f: c for f, c in self._files.items() if not f.startswith(prefix)}

    async def cleanup(self) -> None:
        """Nothing to release; the in-memory state is dropped with the instance."""
        pass
