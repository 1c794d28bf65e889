# aiplan/prompts.py
from textwrap import dedent

from rich.markdown import Markdown as RichMarkdown

from aiplan.protocol_parser import BLOCK_NAME, end_marker, start_marker

# Field tables per operation kind: (field, required, description).
# Multi-line fields are written as --- <field> START --- ... --- <field> END --- blocks.
OPERATION_DEFINITIONS = {
    "create": {
        "summary": "Create a new file. Fails if the file already exists.",
        "fields": [
            ("filePath", True, "path of the new file, relative to the project root"),
            ("content", True, "complete content of the new file (multi-line block)"),
            ("comment", False, "one-line explanation"),
        ],
        "example": {"filePath": "src/greeting.py", "content": 'def greet(name):\n    return f"Hello, {name}!"', "comment": "add greeting helper"},
    },
    "edit": {
        "summary": "Rewrite an existing file. With startLine/endLine, replace only lines startLine up to but not including endLine (1-based, numbered as in the file before the plan runs; endLine equal to startLine inserts).",
        "fields": [
            ("filePath", True, "path of the existing file"),
            ("content", True, "replacement text (multi-line block); empty deletes the range"),
            ("startLine", False, "first line to replace; give both bounds or neither"),
            ("endLine", False, "line after the last one to replace"),
            ("comment", False, "one-line explanation"),
        ],
        "example": {"filePath": "src/app.py", "startLine": "3", "endLine": "5", "content": "import sys\nimport os", "comment": "sort imports"},
    },
    "replace": {
        "summary": "Replace exactly one occurrence of `find` with `content`; without `find`, replace the whole file.",
        "fields": [
            ("filePath", True, "path of the existing file"),
            ("find", False, "exact text to look for (multi-line block); must occur exactly once"),
            ("content", True, "replacement text (multi-line block)"),
            ("comment", False, "one-line explanation"),
        ],
        "example": {"filePath": "README.md", "find": "Version 1.0", "content": "Version 1.1"},
    },
    "rename": {
        "summary": "Move a file. The destination must not exist.",
        "fields": [
            ("oldPath", True, "current path"),
            ("newPath", True, "new path"),
            ("comment", False, "one-line explanation"),
        ],
        "example": {"oldPath": "src/util.py", "newPath": "src/utils.py"},
    },
    "delete": {
        "summary": "Delete an existing file.",
        "fields": [
            ("filePath", True, "path of the file to delete"),
            ("comment", False, "one-line explanation"),
        ],
        "example": {"filePath": "old_notes.txt", "comment": "obsolete"},
    },
    "response": {
        "summary": "Plain explanation for the user. Changes nothing on disk.",
        "fields": [
            ("content", True, "markdown text (multi-line block)"),
        ],
        "example": {"content": "I renamed the helper module and updated the README."},
    },
}

_MULTILINE_FIELDS = ("find", "content")


def render_example(kind: str) -> str:
    """Render the example block of one operation kind in plan syntax."""
    example = OPERATION_DEFINITIONS[kind]["example"]
    lines = [start_marker(BLOCK_NAME), f"type: {kind}"]
    for key, value in example.items():
        if key in _MULTILINE_FIELDS:
            lines.append(start_marker(key))
            lines.append(value)
            lines.append(end_marker(key))
        else:
            lines.append(f"{key}: {value}")
    lines.append(end_marker(BLOCK_NAME))
    return "\n".join(lines)


def _render_definitions() -> str:
    sections = []
    for kind, definition in OPERATION_DEFINITIONS.items():
        field_lines = "\n".join(
            f"  - `{name}` ({'required' if required else 'optional'}): {description}"
            for name, required, description in definition["fields"]
        )
        sections.append(f"### `{kind}`\n{definition['summary']}\n{field_lines}\n\n{render_example(kind)}")
    return "\n\n".join(sections)


def build_system_prompt(history_context: str = "") -> str:
    """System prompt describing the plan format, optionally followed by recent plans."""
    prompt = dedent(f"""\
        You are a careful software engineering assistant. You change the user's
        project only by answering with a plan: a sequence of operation blocks that
        the user reviews before anything is applied.

        ## Plan format
        - Each operation starts with a line `{start_marker(BLOCK_NAME)}` and ends with `{end_marker(BLOCK_NAME)}`.
        - Single-line fields are written as `key: value`. Every block needs a `type:` field.
        - Multi-line fields are written between `--- <field> START ---` and `--- <field> END ---` lines, verbatim.
        - Operations are applied in order. Text outside blocks is ignored.
        - Paths are relative to the project root and must not contain `..`.
        - Line numbers in ranged edits always refer to the file as it was before the plan started.
          Order ranged edits of the same file top to bottom and do not let them overlap.
        - Files shared with you are shown with a line number and `|` before each line.
          That prefix is not part of the file; never copy it into `content`.

        ## Operations
        """)
    prompt += _render_definitions()
    if history_context:
        prompt += dedent("""

            ## Recently applied plans
            The most recent plan is `~1`. Use this to understand what was already changed.

            """) + history_context
    return prompt
