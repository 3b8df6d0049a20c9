"""
Data models for the Canvas grade import.

Field names are snake_case in Python and camelCase on the wire.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PortalModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class FrozenPortalModel(PortalModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ── requests ─────────────────────────────────────────────────────

class ParseRequest(PortalModel):
    """Body of the parse endpoint: CSV text plus an optional 0-100 auto-select threshold."""
    csv_text: str = Field(strict=True)
    threshold: Optional[int] = Field(default=None, ge=0, le=100, strict=True)


# ── normalized source data ───────────────────────────────────────

class NormalizedStudent(PortalModel):
    source_id: str  # unique within the source, "row-<index>" for CSV
    display_name: str
    email: Optional[str] = None
    sis_id: Optional[str] = None
    username: Optional[str] = None


class NormalizedGrade(PortalModel):
    student_source_id: str
    assignment_source_id: str  # the CSV column name
    raw_value: str
    source_type: str = "csv"


class NormalizedGradeData(PortalModel):
    students: List[NormalizedStudent] = Field(default_factory=list)
    assignments: List[str] = Field(default_factory=list)
    grades: List[NormalizedGrade] = Field(default_factory=list)
    skipped_rows: List[int] = Field(default_factory=list)


# ── matching ─────────────────────────────────────────────────────

class ColumnClassification(PortalModel):
    identity: List[str] = Field(default_factory=list)
    summary: List[str] = Field(default_factory=list)
    assignments: List[str] = Field(default_factory=list)


class AssignmentMapping(PortalModel):
    canvas_column: str
    assignment_id: Optional[int] = None  # confirmed target, None means skip the column
    suggested_assignment_id: Optional[int] = None
    suggested_assignment_name: Optional[str] = None
    score: int = 0
    match_status: str = "unmatched"  # confident | ambiguous | unmatched
    grading_type: str = "points"  # points | percentage | letter | status
    mapping_target: str = "assignment"  # assignment | absences


class StudentMatchResult(PortalModel):
    csv_student: NormalizedStudent
    matched_student_id: Optional[int] = None
    matched_student_name: Optional[str] = None
    match_type: str = "not_found"
    confidence: int = 0


# ── change-set ───────────────────────────────────────────────────

class GradeChange(FrozenPortalModel):
    student_id: int
    student_name: str
    assignment_id: int
    assignment_name: str
    old_value: Optional[str] = None
    new_value: str
    raw_value: str = ""
    converted_status: Optional[int] = None
    converted_numeric: Optional[float] = None


class AbsenceChange(FrozenPortalModel):
    student_id: int
    student_name: str
    class_id: int
    current_absences: int
    new_absences: int


class Diagnostic(PortalModel):
    kind: str  # student | assignment | value
    reference: str
    reason: str


class ImportSummary(PortalModel):
    total_students: int = 0
    matched_students: int = 0
    unmatched_students: int = 0
    total_grade_updates: int = 0
    total_absence_updates: int = 0
    assignments_mapped: int = 0


class ImportPreview(PortalModel):
    matched_students: List[StudentMatchResult] = Field(default_factory=list)
    unmatched_students: List[NormalizedStudent] = Field(default_factory=list)
    grade_changes: List[GradeChange] = Field(default_factory=list)
    absence_changes: List[AbsenceChange] = Field(default_factory=list)
    diagnostics: List[Diagnostic] = Field(default_factory=list)
    summary: ImportSummary = Field(default_factory=ImportSummary)


class CommitErrorEntry(PortalModel):
    student: str
    assignment: str
    reason: str


class ImportResult(PortalModel):
    success: bool = True
    processed_students: int = 0
    processed_grades: int = 0
    processed_absences: int = 0
    errors: List[CommitErrorEntry] = Field(default_factory=list)


# ── grade conversion ─────────────────────────────────────────────

class StatusThresholds(PortalModel):
    in_progress: float = 1
    completed: float = 70
    excellent: float = 90


class GradeConversionConfig(PortalModel):
    status_thresholds: StatusThresholds = Field(default_factory=StatusThresholds)
    letter_grade_map: Dict[str, int] = Field(
        default_factory=lambda: {'A': 3, 'B': 2, 'C': 2, 'D': 1, 'F': 0}
    )
