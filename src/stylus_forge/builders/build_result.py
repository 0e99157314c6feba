from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union


class Severity(str, Enum):
    """Severity of a toolchain diagnostic."""
    ERROR = "error"
    WARNING = "warning"
    NOTE = "note"
    HELP = "help"


@dataclass(frozen=True)
class Location:
    """Position of a diagnostic in toolchain coordinates (1-based)."""
    file: str
    line: int
    column: int


@dataclass
class Diagnostic:
    """One compiler-reported error, warning, note or help message."""
    severity: Severity
    message: str
    code: Optional[str] = None
    location: Optional[Location] = None
    snippet: Optional[str] = None
    suggestion: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> dict:
        return {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "location": (
                {
                    "file": self.location.file,
                    "line": self.location.line,
                    "column": self.location.column,
                }
                if self.location else None
            ),
            "snippet": self.snippet,
            "suggestion": self.suggestion,
        }


@dataclass(frozen=True)
class BuildRequest:
    """Source text and project name submitted for one compile invocation."""
    source_text: str
    project_name: str = "contract"


class FailureKind(str, Enum):
    """Why a build failed, so callers can pick a retry affordance."""
    DIAGNOSTICS = "diagnostics"
    TIMEOUT = "timeout"
    TOOLCHAIN_UNAVAILABLE = "toolchain_unavailable"
    ENVIRONMENT = "environment"


@dataclass
class BuildSuccess:
    """Result of a build that produced an artifact."""
    success = True

    artifact_bytes: bytes
    interface_description: Optional[str] = None
    warnings: List[Diagnostic] = field(default_factory=list)
    gas_estimate: Optional[str] = None
    placeholder: bool = False

    def __post_init__(self):
        if not self.artifact_bytes:
            raise ValueError("A successful build must carry a non-empty artifact")

    @property
    def artifact_size_bytes(self) -> int:
        return len(self.artifact_bytes)

    @property
    def bytecode_hex(self) -> str:
        return "0x" + self.artifact_bytes.hex()


@dataclass
class BuildFailure:
    """Result of a build that stopped before producing an artifact."""
    success = False

    errors: List[Diagnostic]
    warnings: List[Diagnostic] = field(default_factory=list)
    kind: FailureKind = FailureKind.DIAGNOSTICS

    def __post_init__(self):
        if not self.errors:
            raise ValueError("A failed build must carry at least one error")

    @property
    def timed_out(self) -> bool:
        return self.kind is FailureKind.TIMEOUT


BuildResult = Union[BuildSuccess, BuildFailure]


@dataclass
class SyntaxCheck:
    """Verdict of a syntax-only validation."""
    valid: bool
    errors: List[Diagnostic] = field(default_factory=list)
