# aiplan/operation_validator.py
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from aiplan.data_models import OPERATION_MODELS, describe_operation
from aiplan.file_utils import count_lines, normalize_path, read_if_exists


@dataclass(frozen=True)
class ValidationIssue:
    field: Optional[str]
    message: str

    def __str__(self):
        return f"{self.field}: {self.message}" if self.field else self.message


@dataclass
class PlanError:
    index: int  # 1-based position of the operation in the plan
    issues: List[ValidationIssue]

    def messages(self) -> List[str]:
        return [f"operation {self.index}: {issue}" for issue in self.issues]


@dataclass
class PlanValidation:
    operations: list = field(default_factory=list)
    errors: List[PlanError] = field(default_factory=list)
    # 1-based plan index of each entry in `operations`.
    indices: List[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def messages(self) -> List[str]:
        return [msg for error in self.errors for msg in error.messages()]


def _issues_from_pydantic(error: ValidationError) -> List[ValidationIssue]:
    issues = []
    for err in error.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part is not None)
        message = err.get("msg", "invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        if err.get("type") == "extra_forbidden":
            message = "unknown field"
        elif err.get("type") == "missing":
            message = "required field is missing"
        issues.append(ValidationIssue(loc or None, message))
    return issues


def validate(record: Mapping[str, str]) -> Union[object, List[ValidationIssue]]:
    """Type-check one parsed record against its kind's schema.

    Returns the typed operation, or a non-empty list of issues. Never touches
    the filesystem.
    """
    kind = (record.get("type") or "").strip().lower()
    if not kind:
        return [ValidationIssue("type", "required field is missing")]
    model = OPERATION_MODELS.get(kind)
    if model is None:
        allowed = ", ".join(sorted(OPERATION_MODELS))
        return [ValidationIssue("type", f"unknown operation type '{record.get('type')}' (expected one of: {allowed})")]
    data = dict(record)
    data["type"] = kind
    try:
        return model.model_validate(data)
    except ValidationError as e:
        return _issues_from_pydantic(e)


def validate_all(records) -> PlanValidation:
    """Validate every record, keeping plan positions for error reporting."""
    validation = PlanValidation()
    for index, record in enumerate(records, start=1):
        outcome = validate(record)
        if isinstance(outcome, list):
            validation.errors.append(PlanError(index, outcome))
        else:
            validation.operations.append(outcome)
            validation.indices.append(index)
    return validation


class _SimulatedTree:
    """Existence and original content of paths as a plan walks over them."""

    def __init__(self, root):
        self.root = root
        self._content: Dict[str, Optional[str]] = {}
        self.rewritten = set()

    def resolve(self, path: str) -> str:
        return normalize_path(path, self.root)

    def content(self, resolved: str) -> Optional[str]:
        if resolved not in self._content:
            if Path(resolved).is_dir():
                self._content[resolved] = None
            else:
                self._content[resolved] = read_if_exists(resolved)
        return self._content[resolved]

    def exists(self, resolved: str) -> bool:
        return self.content(resolved) is not None

    def set(self, resolved: str, content: Optional[str]):
        self._content[resolved] = content


def _reachability_issues(op, tree: _SimulatedTree) -> List[ValidationIssue]:
    if op.kind == "response":
        return []
    if op.kind == "rename":
        source = tree.resolve(op.old_path)
        destination = tree.resolve(op.new_path)
        issues = []
        if not tree.exists(source):
            issues.append(ValidationIssue("oldPath", f"source file does not exist: {op.old_path}"))
        if tree.exists(destination):
            issues.append(ValidationIssue("newPath", f"destination already exists: {op.new_path}"))
        if not issues:
            tree.set(destination, tree.content(source))
            tree.set(source, None)
            if source in tree.rewritten:
                tree.rewritten.add(destination)
        return issues

    target = tree.resolve(op.path)
    current = tree.content(target)
    if op.kind == "create":
        if current is not None:
            return [ValidationIssue("filePath", f"file already exists: {op.path}")]
        tree.set(target, op.content)
        tree.rewritten.add(target)
        return []
    if current is None:
        return [ValidationIssue("filePath", f"file does not exist: {op.path}")]
    if op.kind == "delete":
        tree.set(target, None)
        return []
    if op.kind == "replace" and op.find:
        occurrences = current.count(op.find)
        if occurrences == 0:
            return [ValidationIssue("find", f"text to replace was not found in {op.path}")]
        if occurrences > 1:
            return [ValidationIssue("find", f"text to replace is ambiguous in {op.path}: {occurrences} matches")]
        tree.set(target, current.replace(op.find, op.content, 1))
        tree.rewritten.add(target)
        return []
    if op.kind == "edit" and op.is_ranged:
        # Bounds refer to the original file; only checkable until it is rewritten wholesale.
        if target not in tree.rewritten:
            line_count = count_lines(current)
            if op.end_line > line_count + 1:
                return [ValidationIssue(
                    "endLine", f"line range {op.start_line}-{op.end_line} is outside {op.path} ({line_count} lines)"
                )]
        return []
    tree.set(target, op.content)
    tree.rewritten.add(target)
    return []


def check_reachability(operations, root) -> List[PlanError]:
    """Pre-flight check of a plan against the filesystem under `root`.

    Walks the plan in order so that, e.g., an edit of a file created earlier in
    the same plan is accepted.
    """
    tree = _SimulatedTree(root)
    errors = []
    for index, op in enumerate(operations, start=1):
        try:
            issues = _reachability_issues(op, tree)
        except ValueError as e:
            issues = [ValidationIssue(None, str(e))]
        if issues:
            errors.append(PlanError(index, issues))
    return errors


def plan_warnings(operations) -> List[str]:
    """Ambiguous-plan warnings for line-addressed edits sharing a path."""
    warnings = []
    last_range_end: Dict[str, int] = {}
    rewritten_at: Dict[str, int] = {}
    for index, op in enumerate(operations, start=1):
        if op.kind in ("create", "replace") or (op.kind == "edit" and not op.is_ranged):
            rewritten_at[op.path] = index
            last_range_end.pop(op.path, None)
            continue
        if op.kind != "edit":
            continue
        if op.path in rewritten_at:
            warnings.append(
                f"operation {index}: {describe_operation(op)} follows a whole-file rewrite of the same path "
                f"(operation {rewritten_at[op.path]}); its line numbers cannot refer to the original file"
            )
        previous_end = last_range_end.get(op.path)
        if previous_end is not None and op.start_line < previous_end:
            warnings.append(
                f"operation {index}: {describe_operation(op)} overlaps or precedes an earlier edit of the same "
                f"file; ranged edits must be top-to-bottom and non-overlapping"
            )
        last_range_end[op.path] = max(op.end_line, previous_end or 0)
    return warnings
