# aiplan/protocol_parser.py
"""
Parser for the delimited plan format the model is instructed to emit.

A plan is a sequence of blocks:

    --- OPERATION START ---
    type: edit
    filePath: src/app.py
    startLine: 3
    endLine: 5
    --- content START ---
    new line 3
    new line 4
    --- content END ---
    --- OPERATION END ---

Marker lines are compared after stripping surrounding whitespace. Multi-line
field content is kept verbatim. Model output is often slightly malformed, so
`parse` never raises: a broken block is dropped, reported as a diagnostic, and
parsing carries on with the rest of the text.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from aiplan.data_models import operation_to_record

BLOCK_NAME = "OPERATION"
MARKER_RE = re.compile(r"^--- ([A-Za-z0-9_]+) (START|END) ---$")
FIELD_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Pre-validation record: field name -> raw text value.
OperationRecord = Dict[str, str]


def start_marker(name: str = BLOCK_NAME) -> str:
    return f"--- {name} START ---"


def end_marker(name: str = BLOCK_NAME) -> str:
    return f"--- {name} END ---"


@dataclass(frozen=True)
class ParseDiagnostic:
    line: int
    message: str

    def __str__(self):
        return f"line {self.line}: {self.message}"


@dataclass
class ParseResult:
    records: List[OperationRecord] = field(default_factory=list)
    diagnostics: List[ParseDiagnostic] = field(default_factory=list)
    # 1-based line of each record's opening marker, aligned with `records`.
    record_lines: List[int] = field(default_factory=list)


def _match_marker(line: str):
    match = MARKER_RE.match(line.strip())
    if not match:
        return None, None
    return match.group(1), match.group(2)


def _strip_final_line_break(text: str) -> str:
    if text.endswith("\r\n"):
        return text[:-2]
    if text.endswith("\n"):
        return text[:-1]
    return text


def _iter_lines(text: str):
    # Only LF ends a line; form feeds and other separators stay inside content.
    parts = text.split("\n")
    for index, part in enumerate(parts):
        if index < len(parts) - 1:
            yield part + "\n"
        elif part:
            yield part


class _BlockState:
    def __init__(self, start_line: int):
        self.start_line = start_line
        self.record: OperationRecord = {}
        self.field_name: Optional[str] = None
        self.field_start_line = 0
        self.field_lines: List[str] = []

    def open_field(self, name: str, line_no: int):
        self.field_name = name
        self.field_start_line = line_no
        self.field_lines = []

    def close_field(self) -> Tuple[str, str]:
        name = self.field_name
        value = _strip_final_line_break("".join(self.field_lines))
        self.field_name = None
        self.field_lines = []
        return name, value


def parse(raw_text: str) -> ParseResult:
    """Turn raw plan text into ordered, untyped operation records."""
    result = ParseResult()
    block: Optional[_BlockState] = None

    def diag(line_no: int, message: str):
        result.diagnostics.append(ParseDiagnostic(line_no, message))

    def store_field(state: _BlockState, key: str, value: str, line_no: int):
        if key in state.record:
            diag(line_no, f"duplicate field '{key}' in block starting at line {state.start_line}; last value kept")
        state.record[key] = value

    for line_no, raw_line in enumerate(_iter_lines(raw_text or ""), start=1):
        name, edge = _match_marker(raw_line)

        if block is None:
            if name == BLOCK_NAME and edge == "START":
                block = _BlockState(line_no)
            elif edge == "END":
                diag(line_no, f"stray '{end_marker(name)}' outside of any block")
            # Anything else outside a block is prose around the plan.
            continue

        if block.field_name is not None:
            if name == block.field_name and edge == "END":
                key, value = block.close_field()
                store_field(block, key, value, line_no)
            elif name == BLOCK_NAME and edge == "END":
                diag(line_no, f"field '{block.field_name}' opened at line {block.field_start_line} "
                              f"was not closed before the block ended; block starting at line {block.start_line} dropped")
                block = None
            elif name == BLOCK_NAME and edge == "START":
                diag(line_no, f"field '{block.field_name}' opened at line {block.field_start_line} "
                              f"was not closed; block starting at line {block.start_line} dropped")
                block = _BlockState(line_no)
            else:
                block.field_lines.append(raw_line)
            continue

        if name == BLOCK_NAME and edge == "END":
            result.records.append(block.record)
            result.record_lines.append(block.start_line)
            block = None
        elif name == BLOCK_NAME and edge == "START":
            diag(line_no, f"block starting at line {block.start_line} was not closed; dropped")
            block = _BlockState(line_no)
        elif edge == "START":
            block.open_field(name, line_no)
        elif edge == "END":
            diag(line_no, f"stray '{end_marker(name)}' with no open field; ignored")
        elif raw_line.strip():
            key, sep, value = raw_line.partition(":")
            key = key.strip()
            if not sep or not FIELD_KEY_RE.match(key):
                diag(line_no, f"unrecognised line inside block starting at line {block.start_line}; ignored")
                continue
            store_field(block, key, value.strip(), line_no)

    if block is not None:
        where = f"field '{block.field_name}' is still open; " if block.field_name else ""
        diag(block.start_line, f"block starting at line {block.start_line} reached end of input unterminated; {where}dropped")

    return result


def _format_record(record: Dict[str, object]) -> List[str]:
    lines = [start_marker()]
    block_fields = []
    for key, value in record.items():
        if value is None:
            continue
        text = str(value)
        if key in ("content", "find") or "\n" in text or text != text.strip():
            block_fields.append((key, text))
        else:
            lines.append(f"{key}: {text}")
    for key, text in block_fields:
        lines.append(start_marker(key))
        lines.append(text)
        lines.append(end_marker(key))
    lines.append(end_marker())
    return lines


def format_operations(operations) -> str:
    """Render typed operations back into plan text that `parse` accepts."""
    lines: List[str] = []
    for op in operations:
        lines.extend(_format_record(operation_to_record(op)))
        lines.append("")
    return "\n".join(lines)
