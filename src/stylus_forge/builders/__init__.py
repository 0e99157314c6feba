# builders/__init__.py
from .build_result import (
    BuildFailure,
    BuildRequest,
    BuildResult,
    BuildSuccess,
    Diagnostic,
    FailureKind,
    Location,
    Severity,
    SyntaxCheck,
)

__all__ = [
    'BuildFailure',
    'BuildRequest',
    'BuildResult',
    'BuildSuccess',
    'Diagnostic',
    'FailureKind',
    'Location',
    'Severity',
    'SyntaxCheck',
]
