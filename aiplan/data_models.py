# aiplan/data_models.py
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, model_validator


class _OperationBase(BaseModel):
    model_config = ConfigDict(extra='forbid', frozen=True, populate_by_name=True)


class CreateOperation(_OperationBase):
    kind: Literal["create"] = Field("create", alias="type")
    path: str = Field(alias="filePath", min_length=1)
    content: str
    comment: Optional[str] = None


class EditOperation(_OperationBase):
    """Replaces the whole file, or the half-open line range [start_line, end_line)
    of the file as it was at the start of the plan."""
    kind: Literal["edit"] = Field("edit", alias="type")
    path: str = Field(alias="filePath", min_length=1)
    content: str
    start_line: Optional[PositiveInt] = Field(None, alias="startLine")
    end_line: Optional[PositiveInt] = Field(None, alias="endLine")
    comment: Optional[str] = None

    @model_validator(mode="after")
    def _check_line_range(self):
        if (self.start_line is None) != (self.end_line is None):
            raise ValueError("startLine and endLine must be given together")
        if self.start_line is not None and self.end_line < self.start_line:
            raise ValueError(f"endLine ({self.end_line}) must not be less than startLine ({self.start_line})")
        return self

    @property
    def is_ranged(self) -> bool:
        return self.start_line is not None


class ReplaceOperation(_OperationBase):
    kind: Literal["replace"] = Field("replace", alias="type")
    path: str = Field(alias="filePath", min_length=1)
    content: str
    find: Optional[str] = None  # None or empty: overwrite the whole file
    comment: Optional[str] = None


class RenameOperation(_OperationBase):
    kind: Literal["rename"] = Field("rename", alias="type")
    old_path: str = Field(alias="oldPath", min_length=1)
    new_path: str = Field(alias="newPath", min_length=1)
    comment: Optional[str] = None


class DeleteOperation(_OperationBase):
    kind: Literal["delete"] = Field("delete", alias="type")
    path: str = Field(alias="filePath", min_length=1)
    comment: Optional[str] = None


class ResponseOperation(_OperationBase):
    kind: Literal["response"] = Field("response", alias="type")
    text: str = Field(alias="content")
    comment: Optional[str] = None


Operation = Annotated[
    Union[
        CreateOperation,
        EditOperation,
        ReplaceOperation,
        RenameOperation,
        DeleteOperation,
        ResponseOperation,
    ],
    Field(discriminator="kind"),
]

OPERATION_MODELS = {
    "create": CreateOperation,
    "edit": EditOperation,
    "replace": ReplaceOperation,
    "rename": RenameOperation,
    "delete": DeleteOperation,
    "response": ResponseOperation,
}

# Operations whose target content is backed up before execution.
BACKED_UP_KINDS = {"edit", "replace", "delete", "rename"}


def touched_paths(op) -> List[str]:
    """Paths an operation reads or writes, in the order they are touched."""
    if op.kind == "rename":
        return [op.old_path, op.new_path]
    if op.kind == "response":
        return []
    return [op.path]


def describe_operation(op) -> str:
    if op.kind == "rename":
        return f"rename {op.old_path} -> {op.new_path}"
    if op.kind == "response":
        return "response"
    if op.kind == "edit" and op.is_ranged:
        return f"edit {op.path} (lines {op.start_line}-{op.end_line})"
    return f"{op.kind} {op.path}"


class HistoryEntry(BaseModel):
    model_config = ConfigDict(extra='ignore', frozen=True, populate_by_name=True)

    id: str
    name: Optional[str] = None
    timestamp: str
    prompt: str = ""
    description: str = ""
    operations: List[Operation] = Field(default_factory=list)
    original_content: Dict[str, str] = Field(default_factory=dict, alias="originalContent")
    # One flag per attempted operation; empty for entries written without outcomes.
    succeeded: List[bool] = Field(default_factory=list)
    result_content: Dict[str, Optional[str]] = Field(default_factory=dict, alias="resultContent")

    def operation_succeeded(self, index: int) -> bool:
        if index < len(self.succeeded):
            return self.succeeded[index]
        return not self.succeeded

    @property
    def label(self) -> str:
        return self.name or self.id


class OperationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    operation: Operation
    success: bool
    error: Optional[str] = None


class PlanExecutionError(Exception):
    """Raised by ExecutionReport.raise_for_failure() when a plan did not fully apply."""

    def __init__(self, report: "ExecutionReport"):
        self.report = report
        super().__init__(
            f"Plan execution incomplete: {report.failed} of {report.total} operation(s) failed"
        )


class ExecutionReport(BaseModel):
    results: List[OperationResult] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    entry_id: Optional[str] = None
    # Line shift per resolved file path left by the applied edits.
    line_deltas: Dict[str, int] = Field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    @property
    def failed_index(self) -> Optional[int]:
        for index, result in enumerate(self.results):
            if not result.success:
                return index
        return None

    def raise_for_failure(self):
        if not self.ok:
            raise PlanExecutionError(self)

    def summary(self) -> str:
        return f"{self.succeeded} succeeded, {self.failed} failed (of {self.total} attempted)"


def operation_to_record(op) -> Dict[str, Any]:
    return op.model_dump(by_alias=True, exclude_none=True)
