"""Tool definition types and typed tool inputs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ToolName(str, Enum):
    """The closed set of tools exposed to the model."""

    EXECUTE_CODE = "execute_code"
    READ_FILE = "read_file"
    WRITE_FILE = "write_file"
    LIST_FILES = "list_files"


class Language(str, Enum):
    """Languages accepted by ``execute_code``."""

    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    PYTHON = "python"
    BASH = "bash"


@dataclass(frozen=True, slots=True)
class ToolParam:
    """A parameter for a tool."""

    name: str
    type: str  # "string", "integer", "boolean", "array", "object"
    description: str
    required: bool = True
    enum: tuple[str, ...] | None = None
    default: Any = None


@dataclass(frozen=True, slots=True)
class ToolDef:
    """Definition of a tool exposed to the model."""

    name: str
    description: str
    parameters: tuple[ToolParam, ...] = ()


@dataclass(slots=True)
class ToolResultData:
    """Data returned from tool execution."""

    content: str
    is_error: bool = False


# -- Typed inputs ------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ExecuteCodeInput:
    language: Language
    code: str


@dataclass(frozen=True, slots=True)
class ReadFileInput:
    path: str


@dataclass(frozen=True, slots=True)
class WriteFileInput:
    path: str
    content: str


@dataclass(frozen=True, slots=True)
class ListFilesInput:
    path: str | None = None


ToolInput = ExecuteCodeInput | ReadFileInput | WriteFileInput | ListFilesInput
