'''
Turns raw cargo/rustc output into structured Diagnostic records.

Two independent parsers run over the same text: ``parse_diagnostics`` follows
the rustc human-readable grammar, ``parse_stylus_diagnostics`` looks up a
fixed table of cargo-stylus messages. The builders compose them.
'''
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from ..builders.build_result import Diagnostic, Location, Severity

HEADER_RE = re.compile(r'^(error|warning|note|help)(\[([^\]]+)\])?: (.+)$')
LOCATION_RE = re.compile(r'^\s*--> (.+?):(\d+):(\d+)\s*$')
HELP_RE = re.compile(r'^\s*(?:= )?help: (.+)$')
SNIPPET_RE = re.compile(r'^\s*(\d+\s*)?\|')
ERROR_CODE_RE = re.compile(r'E\d{4}')


class ParserState(Enum):
    IDLE = "idle"
    HEADER = "header"
    SNIPPET = "snippet"


class _Accumulator:
    """Holds the currently open diagnostic while scanning lines."""

    def __init__(self):
        self.state = ParserState.IDLE
        self.current: Optional[Diagnostic] = None
        self.snippet_lines: List[str] = []
        self.emitted: List[Diagnostic] = []

    def open(self, diagnostic: Diagnostic) -> None:
        self.flush()
        self.current = diagnostic
        self.state = ParserState.HEADER

    def add_snippet_line(self, line: str) -> None:
        self.snippet_lines.append(line)
        self.state = ParserState.SNIPPET

    def flush(self) -> None:
        if self.state is ParserState.IDLE:
            return
        if self.snippet_lines:
            self.current.snippet = '\n'.join(self.snippet_lines)
        self.emitted.append(self.current)
        self.current = None
        self.snippet_lines = []
        self.state = ParserState.IDLE


def parse_diagnostics(output: str) -> List[Diagnostic]:
    """Parse rustc output into diagnostics, in the order they were printed.

    Example input::

        error[E0425]: cannot find value `x` in this scope
         --> src/main.rs:10:5
          |
       10 |     x + 1
          |     ^ not found in this scope
    """
    acc = _Accumulator()

    for line in output.splitlines():
        header = HEADER_RE.match(line)
        if header:
            severity, _, code, message = header.groups()
            acc.open(Diagnostic(
                severity=Severity(severity),
                code=code,
                message=message.strip(),
            ))
            continue

        if acc.state is ParserState.IDLE:
            continue

        location = LOCATION_RE.match(line)
        if location:
            # Primary span comes first; secondary spans don't move it
            if acc.current.location is None:
                file, line_no, column = location.groups()
                acc.current.location = Location(
                    file=file.strip(),
                    line=int(line_no),
                    column=int(column),
                )
            continue

        help_line = HELP_RE.match(line)
        if help_line:
            acc.current.suggestion = help_line.group(1).strip()
            continue

        if SNIPPET_RE.match(line):
            acc.add_snippet_line(line)

    acc.flush()
    return acc.emitted


@dataclass(frozen=True)
class _StylusRule:
    marker: str
    message: str
    suggestion: str


STYLUS_RULES = (
    _StylusRule(
        marker='contract exceeds maximum size',
        message='Contract size ({size}KB) exceeds maximum allowed size (24KB)',
        suggestion='Enable release optimizations or reduce contract complexity',
    ),
    _StylusRule(
        marker='exceeds gas limit',
        message='Contract initialization exceeds gas limit',
        suggestion='Reduce initialization complexity or storage operations',
    ),
    _StylusRule(
        marker='invalid storage layout',
        message='Invalid storage layout detected',
        suggestion='Ensure #[storage] struct follows Stylus SDK patterns',
    ),
    _StylusRule(
        marker='no entrypoint',
        message='Contract must have an #[entrypoint] attribute',
        suggestion='Add #[entrypoint] to your main storage struct',
    ),
)

SIZE_RE = re.compile(r'(\d+)\s*KB')


def parse_stylus_diagnostics(output: str) -> List[Diagnostic]:
    """Find known cargo-stylus failure messages in the output."""
    found = []
    for line in output.splitlines():
        for rule in STYLUS_RULES:
            if rule.marker not in line:
                continue
            size = SIZE_RE.search(line)
            found.append(Diagnostic(
                severity=Severity.ERROR,
                message=rule.message.format(size=size.group(1) if size else 'unknown'),
                suggestion=rule.suggestion,
            ))
    return found


def parse_flat_diagnostics(output: str) -> List[Diagnostic]:
    """Reduced parser: one error per line mentioning ``error:`` or ``error[``."""
    return [
        Diagnostic(severity=Severity.ERROR, message=line.strip())
        for line in output.splitlines()
        if 'error:' in line or 'error[' in line
    ]


def parse_flat_warnings(output: str) -> List[Diagnostic]:
    return [
        Diagnostic(severity=Severity.WARNING, message=line.strip())
        for line in output.splitlines()
        if 'warning:' in line or 'warning[' in line
    ]


def format_for_display(diagnostics: Iterable[Diagnostic]) -> str:
    """Render diagnostics in rustc's layout so the output re-parses."""
    blocks = []
    for diag in diagnostics:
        header = diag.severity.value
        if diag.code:
            header += f'[{diag.code}]'
        lines = [f'{header}: {diag.message}']

        if diag.location:
            loc = diag.location
            lines.append(f' --> {loc.file}:{loc.line}:{loc.column}')
        if diag.snippet:
            lines.append(diag.snippet)
        if diag.suggestion:
            lines.append(f'  help: {diag.suggestion}')

        blocks.append('\n'.join(lines))
    return '\n\n'.join(blocks)


FRIENDLY_MESSAGES = {
    'E0425': 'Variable or function not found. Check spelling and imports.',
    'E0277': 'Type does not implement required trait. Check trait bounds.',
    'E0308': 'Type mismatch. Check that types match in assignment or function call.',
    'E0433': 'Module or crate not found. Check Cargo.toml dependencies.',
    'E0599': 'Method not found. Check that type implements the method.',
    'E0382': 'Use of moved value. Value was moved and can no longer be used.',
    'E0502': 'Cannot borrow as mutable while also borrowed as immutable.',
    'E0597': 'Borrowed value does not live long enough.',
}


def to_user_friendly_message(diagnostic: Diagnostic) -> str:
    """Plain-language explanation for a diagnostic, else its raw message."""
    code = diagnostic.code
    if not code:
        match = ERROR_CODE_RE.search(diagnostic.message)
        code = match.group(0) if match else None
    if code in FRIENDLY_MESSAGES:
        return FRIENDLY_MESSAGES[code]

    message = diagnostic.message
    if 'cannot find' in message:
        return 'Item not found. Check imports and spelling.'
    if 'mismatched types' in message:
        return 'Type mismatch. Ensure types are compatible.'
    if 'borrow' in message:
        return 'Borrowing error. Check ownership and lifetimes.'
    if 'trait' in message:
        return 'Trait requirement not satisfied. Implement required trait.'

    return message


CODE_CATEGORIES = (
    (range(400, 500), 'name-resolution'),
    (range(200, 300), 'type-error'),
    (range(500, 600), 'borrow-checker'),
    (range(700, 800), 'trait-error'),
)


def categorize(diagnostic: Diagnostic) -> str:
    """Coarse bucket for analytics."""
    if diagnostic.code and re.fullmatch(r'E\d+', diagnostic.code):
        number = int(diagnostic.code[1:])
        for codes, category in CODE_CATEGORIES:
            if number in codes:
                return category

    message = diagnostic.message.lower()
    if 'contract exceeds' in message or 'exceeds maximum' in message:
        return 'size-limit'
    if 'gas limit' in message:
        return 'gas-limit'
    if 'storage' in message:
        return 'storage-error'

    return 'other'


@dataclass(frozen=True)
class Position:
    line: int
    column: int


# Editor columns are 0-based, rustc columns are 1-based; lines are 1-based in both.
def editor_to_toolchain_position(position: Position) -> Position:
    return Position(line=position.line, column=position.column + 1)


def toolchain_to_editor_position(position: Position) -> Position:
    return Position(line=position.line, column=position.column - 1)
