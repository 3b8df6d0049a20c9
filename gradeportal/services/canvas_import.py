"""
Canvas Gradebook Import
=======================
Turns a Canvas gradebook CSV export into a reviewable change-set and
applies the changes a reviewer approves.

Flow:
1. normalize_canvas_export() - parse and classify the CSV
2. suggest_mappings()        - propose column -> assignment mappings
3. generate_preview()        - diff imported values against stored progress
4. execute_import()          - apply approved changes one at a time

Unresolved students, unmapped columns and per-change failures come back as
structured data; only a malformed CSV raises.
"""
import logging
from typing import Iterable, List, Optional

from gradeportal.audit import audit_change
from gradeportal.constants import (
    MAX_NUMERIC_GRADE, NOT_STARTED, SCORING_STATUS, STATUS_LABELS, status_label,
)
from gradeportal.errors import MalformedInputError, UnresolvedReferenceError, CommitItemError
from gradeportal.services.column_classifier import classify_columns
from gradeportal.services.csv_parser import parse_csv
from gradeportal.services.grade_converter import GradeConverter
from gradeportal.services.import_models import (
    AbsenceChange,
    AssignmentMapping,
    CommitErrorEntry,
    Diagnostic,
    GradeChange,
    ImportPreview,
    ImportResult,
    ImportSummary,
    NormalizedGrade,
    NormalizedGradeData,
    NormalizedStudent,
)
from gradeportal.services.student_matcher import StudentMatcher

logger = logging.getLogger(__name__)

STUDENT_COLUMN = 'Student'
LOGIN_COLUMN = 'SIS Login ID'
SIS_ID_COLUMN = 'SIS User ID'
POINTS_POSSIBLE = 'points possible'


def _column_lookup(headers: List[str]) -> dict:
    return {h.lower().strip(): h for h in headers}


def normalize_canvas_export(csv_text: str, system_columns: Iterable[str],
                            summary_columns: Iterable[str]) -> NormalizedGradeData:
    """Parse a Canvas gradebook export into students, columns and grades.

    Raises:
        MalformedInputError: unparseable CSV, or no assignment columns
    """
    headers, rows = parse_csv(csv_text)
    classification = classify_columns(headers, system_columns, summary_columns)

    if not classification.assignments:
        raise MalformedInputError(
            "No assignment columns found in CSV. Make sure your Canvas export includes grade columns."
        )

    lookup = _column_lookup(headers)
    student_col = lookup.get(STUDENT_COLUMN.lower()) or lookup.get('name')
    login_col = lookup.get(LOGIN_COLUMN.lower())
    sis_col = lookup.get(SIS_ID_COLUMN.lower())
    if student_col is None:
        raise MalformedInputError("CSV has no Student column")

    data = NormalizedGradeData(assignments=classification.assignments)
    for index, row in enumerate(rows):
        student_name = row.get(student_col, '')
        if not student_name or student_name.lower() == POINTS_POSSIBLE:
            data.skipped_rows.append(index)
            continue

        login = row.get(login_col, '') if login_col else ''
        sis_id = row.get(sis_col, '') if sis_col else ''
        student = NormalizedStudent(
            source_id=f"row-{index}",
            display_name=student_name,
            email=login or None,
            sis_id=sis_id or None,
            username=login or None,
        )
        data.students.append(student)

        for column in classification.assignments:
            value = row.get(column, '')
            if value:
                data.grades.append(NormalizedGrade(
                    student_source_id=student.source_id,
                    assignment_source_id=column,
                    raw_value=value,
                ))

    logger.info("Normalized Canvas export: %d students, %d assignment columns, %d grades",
                len(data.students), len(data.assignments), len(data.grades))
    return data


def _stored_display_value(assignment: dict, progress: Optional[dict]) -> Optional[str]:
    if assignment["scoring_type"] == SCORING_STATUS:
        status = progress.get("status") if progress else None
        return status_label(NOT_STARTED if status is None else status)
    if progress and progress.get("numeric_grade") is not None:
        return _format_number(progress["numeric_grade"])
    return None


def _format_number(value) -> str:
    return f"{float(value):g}"


def _diff_grade(converter, mapping, assignment, student_id, student_name, raw_value,
                progress) -> Optional[GradeChange]:
    """GradeChange for one cell, or None when the stored value already matches."""
    if assignment["scoring_type"] == SCORING_STATUS:
        new_status = converter.to_status(raw_value, mapping.grading_type)
        stored = progress.get("status") if progress else None
        if (NOT_STARTED if stored is None else stored) == new_status:
            return None
        return GradeChange(
            student_id=student_id,
            student_name=student_name,
            assignment_id=assignment["id"],
            assignment_name=assignment["name"],
            old_value=_stored_display_value(assignment, progress),
            new_value=status_label(new_status),
            raw_value=raw_value,
            converted_status=new_status,
        )

    new_numeric = converter.to_numeric(raw_value, mapping.grading_type)
    stored = progress.get("numeric_grade") if progress else None
    if stored is not None and round(float(stored), 2) == round(new_numeric, 2):
        return None
    return GradeChange(
        student_id=student_id,
        student_name=student_name,
        assignment_id=assignment["id"],
        assignment_name=assignment["name"],
        old_value=_stored_display_value(assignment, progress),
        new_value=_format_number(new_numeric),
        raw_value=raw_value,
        converted_numeric=new_numeric,
    )


def generate_preview(store, class_id: int, data: NormalizedGradeData,
                     mappings: List[AssignmentMapping], converter: GradeConverter = None,
                     student_threshold: int = 80) -> ImportPreview:
    """Compute the change-set an import would apply, without writing anything."""
    converter = converter or GradeConverter()
    enrolled = store.get_enrolled_students(class_id)
    assignments = {a["id"]: a for a in store.get_assignments_by_class(class_id)}
    progress_index = {
        (p["student_id"], p["assignment_id"]): p
        for p in store.get_progress_for_class(class_id)
    }

    preview = ImportPreview()

    match_results = StudentMatcher(enrolled, threshold=student_threshold).match_all(data.students)
    student_by_source = {}
    for result in match_results:
        if result.matched_student_id is None:
            preview.unmatched_students.append(result.csv_student)
            error = UnresolvedReferenceError(
                "student", result.csv_student.display_name,
                f"No enrolled student matches '{result.csv_student.display_name}'",
            )
            preview.diagnostics.append(Diagnostic(**error.to_diagnostic()))
        else:
            preview.matched_students.append(result)
            student_by_source[result.csv_student.source_id] = result

    # Resolve mappings; anything that does not land on a class assignment is reported
    mapping_by_column = {}
    absence_columns = {}
    mapped_columns = set()
    for mapping in mappings:
        mapped_columns.add(mapping.canvas_column)
        if mapping.mapping_target == "absences":
            absence_columns[mapping.canvas_column] = mapping
            continue
        if mapping.assignment_id is None:
            error = UnresolvedReferenceError(
                "assignment", mapping.canvas_column,
                f"Column '{mapping.canvas_column}' is not mapped to an assignment",
            )
            preview.diagnostics.append(Diagnostic(**error.to_diagnostic()))
            continue
        if mapping.assignment_id not in assignments:
            error = UnresolvedReferenceError(
                "assignment", mapping.canvas_column,
                f"Assignment {mapping.assignment_id} does not exist in this class",
            )
            preview.diagnostics.append(Diagnostic(**error.to_diagnostic()))
            continue
        mapping_by_column[mapping.canvas_column] = mapping

    for column in data.assignments:
        if column not in mapped_columns:
            error = UnresolvedReferenceError(
                "assignment", column, f"Column '{column}' has no mapping",
            )
            preview.diagnostics.append(Diagnostic(**error.to_diagnostic()))

    for grade in data.grades:
        match = student_by_source.get(grade.student_source_id)
        if match is None or not grade.raw_value.strip():
            continue
        raw_value = grade.raw_value.strip()

        if grade.assignment_source_id in absence_columns:
            change = _diff_absences(store, class_id, match, raw_value, preview)
            if change is not None:
                preview.absence_changes.append(change)
            continue

        mapping = mapping_by_column.get(grade.assignment_source_id)
        if mapping is None:
            continue
        assignment = assignments[mapping.assignment_id]
        change = _diff_grade(
            converter, mapping, assignment,
            match.matched_student_id, match.matched_student_name, raw_value,
            progress_index.get((match.matched_student_id, assignment["id"])),
        )
        if change is not None:
            preview.grade_changes.append(change)

    preview.summary = ImportSummary(
        total_students=len(data.students),
        matched_students=len(preview.matched_students),
        unmatched_students=len(preview.unmatched_students),
        total_grade_updates=len(preview.grade_changes),
        total_absence_updates=len(preview.absence_changes),
        assignments_mapped=len(mapping_by_column) + len(absence_columns),
    )
    logger.info("Import preview for class %s: %d grade changes, %d absence changes, %d diagnostics",
                class_id, len(preview.grade_changes), len(preview.absence_changes),
                len(preview.diagnostics))
    return preview


def _diff_absences(store, class_id, match, raw_value, preview) -> Optional[AbsenceChange]:
    try:
        new_absences = int(float(raw_value))
    except (ValueError, OverflowError):
        new_absences = -1
    if new_absences < 0:
        preview.diagnostics.append(Diagnostic(
            kind="value",
            reference=match.matched_student_name,
            reason=f"Absence count '{raw_value}' is not a non-negative number",
        ))
        return None

    current = store.get_student_absences(match.matched_student_id, class_id)
    if current == new_absences:
        return None
    return AbsenceChange(
        student_id=match.matched_student_id,
        student_name=match.matched_student_name,
        class_id=class_id,
        current_absences=current,
        new_absences=new_absences,
    )


def execute_import(store, grade_changes: List[GradeChange],
                   absence_changes: List[AbsenceChange] = None,
                   user="instructor", class_id: int = None) -> ImportResult:
    """Apply approved changes one by one.

    A failing change is recorded in the result's errors and the rest of the
    batch still runs; changes applied before a failure stay applied.
    """
    processed_students = set()
    result = ImportResult()

    for change in grade_changes:
        try:
            _apply_grade_change(store, change, user, class_id)
        except (UnresolvedReferenceError, ValueError) as e:
            error = CommitItemError(change.student_name, change.assignment_name, str(e))
            logger.warning("Grade import item failed: %s", error)
            result.errors.append(CommitErrorEntry(**error.to_dict()))
            continue
        processed_students.add(change.student_id)
        result.processed_grades += 1

    for change in absence_changes or []:
        try:
            if class_id is not None and change.class_id != class_id:
                raise ValueError("Absence change belongs to another class")
            _check_student(store, change.student_id, change.class_id)
            store.set_student_absences(change.student_id, change.class_id, change.new_absences)
        except (UnresolvedReferenceError, ValueError) as e:
            error = CommitItemError(change.student_name, "Absences", str(e))
            logger.warning("Absence import item failed: %s", error)
            result.errors.append(CommitErrorEntry(**error.to_dict()))
            continue
        audit_change(user, "attendance", change.student_id,
                     {"absences": change.current_absences}, {"absences": change.new_absences})
        processed_students.add(change.student_id)
        result.processed_absences += 1

    result.processed_students = len(processed_students)
    result.success = not result.errors
    logger.info("Import committed: %d grades, %d absences, %d students, %d errors",
                result.processed_grades, result.processed_absences,
                result.processed_students, len(result.errors))
    return result


def _check_student(store, student_id, class_id):
    if store.get_user(student_id) is None:
        raise UnresolvedReferenceError("student", student_id,
                                       f"Student {student_id} no longer exists")
    enrolled = {s["id"] for s in store.get_enrolled_students(class_id)}
    if student_id not in enrolled:
        raise ValueError("Student is not enrolled in this class")


def _check_converted_value(change: GradeChange):
    if change.converted_status is None and change.converted_numeric is None:
        raise ValueError("Change has no converted value")
    if change.converted_status is not None and change.converted_status not in STATUS_LABELS:
        raise ValueError(f"Status {change.converted_status} is outside 0-3")
    if change.converted_numeric is not None and not 0.0 <= change.converted_numeric <= MAX_NUMERIC_GRADE:
        raise ValueError(f"Score {change.converted_numeric} is outside 0-{MAX_NUMERIC_GRADE:g}")


def _apply_grade_change(store, change: GradeChange, user, class_id=None):
    _check_converted_value(change)
    assignment = store.get_assignment(change.assignment_id)
    if assignment is None:
        raise UnresolvedReferenceError("assignment", change.assignment_id,
                                       f"Assignment {change.assignment_id} no longer exists")
    if class_id is not None and assignment["class_id"] != class_id:
        raise ValueError("Assignment belongs to another class")
    _check_student(store, change.student_id, assignment["class_id"])

    before = store.get_progress(change.student_id, change.assignment_id)
    record = store.update_progress(
        change.student_id,
        change.assignment_id,
        status=change.converted_status,
        numeric_grade=change.converted_numeric,
    )
    old_values = None
    if before:
        old_values = {"status": before.get("status"), "numeric_grade": before.get("numeric_grade")}
    audit_change(user, "assignment_progress", record["id"], old_values,
                 {"status": record.get("status"), "numeric_grade": record.get("numeric_grade")})
