"""
Test: Canvas import - normalization, preview diffing and commit.
"""
import os

import pytest

from gradeportal.audit import get_audit_logs
from gradeportal.config import CANVAS_SYSTEM_COLUMNS, CANVAS_SUMMARY_COLUMNS
from gradeportal.errors import MalformedInputError
from gradeportal.services.canvas_import import (
    execute_import, generate_preview, normalize_canvas_export,
)
from gradeportal.services.import_models import (
    AbsenceChange, AssignmentMapping, GradeChange, NormalizedGrade,
    NormalizedGradeData, NormalizedStudent,
)


def _normalize(csv_text):
    return normalize_canvas_export(csv_text, CANVAS_SYSTEM_COLUMNS, CANVAS_SUMMARY_COLUMNS)


def _single_cell(name, username, column, value):
    """Normalized data for one student and one grade cell."""
    student = NormalizedStudent(source_id="row-0", display_name=name, username=username)
    return NormalizedGradeData(
        students=[student],
        assignments=[column],
        grades=[NormalizedGrade(student_source_id="row-0", assignment_source_id=column, raw_value=value)],
    )


class TestNormalizeCanvasExport:
    def test_students_and_columns(self, canvas_csv):
        data = _normalize(canvas_csv)
        assert data.assignments == ["HW1", "HW2", "Lab Report", "Absences"]
        assert [s.display_name for s in data.students] == ["Johnson, Alice", "Smith, Bob", "Unknown Person"]

    def test_points_possible_row_skipped(self, canvas_csv):
        data = _normalize(canvas_csv)
        assert data.skipped_rows == [0]
        assert data.students[0].source_id == "row-1"

    def test_identity_fields(self, canvas_csv):
        alice = _normalize(canvas_csv).students[0]
        assert alice.username == "ajohnson"
        assert alice.email == "ajohnson"
        assert alice.sis_id == "S1001"

    def test_empty_cells_have_no_grade(self, canvas_csv):
        data = _normalize(canvas_csv)
        unknown = [g for g in data.grades if g.student_source_id == "row-3"]
        assert [g.assignment_source_id for g in unknown] == ["HW1"]

    def test_no_assignment_columns(self, fixtures_dir):
        with open(os.path.join(fixtures_dir, "no_assignments.csv"), newline="") as f:
            csv_text = f.read()
        with pytest.raises(MalformedInputError):
            _normalize(csv_text)

    def test_header_only(self):
        with pytest.raises(MalformedInputError):
            _normalize("Student,HW1")


class TestGeneratePreview:
    def test_changes_for_sample_export(self, store, seeded, canvas_csv, standard_mappings):
        preview = generate_preview(store, seeded["class"]["id"], _normalize(canvas_csv), standard_mappings)

        changes = {(c.student_name, c.assignment_name): c for c in preview.grade_changes}
        assert set(changes) == {
            ("Alice Johnson", "HW1"),
            ("Alice Johnson", "HW2"),
            ("Alice Johnson", "Lab Report"),
        }
        hw1 = changes[("Alice Johnson", "HW1")]
        assert (hw1.old_value, hw1.new_value) == ("Completed", "Excellent")
        assert hw1.converted_status == 3
        assert hw1.converted_numeric is None

        lab = changes[("Alice Johnson", "Lab Report")]
        assert lab.old_value is None
        assert lab.new_value == "3.4"
        assert lab.converted_numeric == pytest.approx(3.4)

    def test_summary(self, store, seeded, canvas_csv, standard_mappings):
        preview = generate_preview(store, seeded["class"]["id"], _normalize(canvas_csv), standard_mappings)
        summary = preview.summary
        assert summary.total_students == 3
        assert summary.matched_students == 2
        assert summary.unmatched_students == 1
        assert summary.total_grade_updates == 3
        assert summary.total_absence_updates == 1
        assert summary.assignments_mapped == 4

    def test_unmatched_student_is_diagnostic(self, store, seeded, canvas_csv, standard_mappings):
        preview = generate_preview(store, seeded["class"]["id"], _normalize(canvas_csv), standard_mappings)
        assert [s.display_name for s in preview.unmatched_students] == ["Unknown Person"]
        student_diags = [d for d in preview.diagnostics if d.kind == "student"]
        assert len(student_diags) == 1
        assert student_diags[0].reference == "Unknown Person"

    def test_unmapped_columns_are_diagnostics(self, store, seeded, canvas_csv):
        mappings = [
            AssignmentMapping(canvas_column="HW1", assignment_id=seeded["hw1"]["id"], grading_type="status"),
            AssignmentMapping(canvas_column="HW2", assignment_id=None, match_status="ambiguous"),
            AssignmentMapping(canvas_column="Lab Report", assignment_id=9999),
        ]
        preview = generate_preview(store, seeded["class"]["id"], _normalize(canvas_csv), mappings)
        refs = sorted(d.reference for d in preview.diagnostics if d.kind == "assignment")
        assert refs == ["Absences", "HW2", "Lab Report"]
        assert {c.assignment_name for c in preview.grade_changes} == {"HW1"}

    def test_no_op_changes_suppressed(self, store, seeded, canvas_csv, standard_mappings):
        preview = generate_preview(store, seeded["class"]["id"], _normalize(canvas_csv), standard_mappings)
        # Bob's HW2 and Lab Report already hold the imported values
        assert not [c for c in preview.grade_changes if c.student_name == "Bob Smith"]
        for change in preview.grade_changes:
            assert change.old_value != change.new_value

    def test_not_started_matches_missing_progress(self, store, seeded):
        data = _single_cell("Carol Williams", "cwilliams", "HW1", "-")
        mappings = [AssignmentMapping(canvas_column="HW1", assignment_id=seeded["hw1"]["id"])]
        preview = generate_preview(store, seeded["class"]["id"], data, mappings)
        assert preview.grade_changes == []

    def test_absence_change(self, store, seeded, canvas_csv, standard_mappings):
        preview = generate_preview(store, seeded["class"]["id"], _normalize(canvas_csv), standard_mappings)
        assert len(preview.absence_changes) == 1
        change = preview.absence_changes[0]
        assert change.student_name == "Alice Johnson"
        assert (change.current_absences, change.new_absences) == (0, 2)

    def test_bad_absence_value(self, store, seeded):
        data = _single_cell("Carol Williams", "cwilliams", "Absences", "lots")
        mappings = [AssignmentMapping(canvas_column="Absences", mapping_target="absences")]
        preview = generate_preview(store, seeded["class"]["id"], data, mappings)
        assert preview.absence_changes == []
        assert [d.kind for d in preview.diagnostics] == ["value"]

    def test_preview_writes_nothing(self, store, seeded, canvas_csv, standard_mappings):
        before = store.get_progress_for_class(seeded["class"]["id"])
        generate_preview(store, seeded["class"]["id"], _normalize(canvas_csv), standard_mappings)
        assert store.get_progress_for_class(seeded["class"]["id"]) == before

    def test_non_finite_points_value(self, store, seeded):
        data = _single_cell("Alice Johnson", "ajohnson", "Lab Report", "inf")
        mappings = [AssignmentMapping(canvas_column="Lab Report", assignment_id=seeded["lab"]["id"],
                                      grading_type="points")]
        preview = generate_preview(store, seeded["class"]["id"], data, mappings)
        assert len(preview.grade_changes) == 1
        assert preview.grade_changes[0].converted_numeric == 2.0


class TestExecuteImport:
    def test_commit_then_rediff_is_empty(self, store, seeded):
        data = _single_cell("Alice Johnson", "ajohnson", "HW1", "Excellent")
        mappings = [AssignmentMapping(canvas_column="HW1", assignment_id=seeded["hw1"]["id"],
                                      grading_type="status")]
        class_id = seeded["class"]["id"]

        preview = generate_preview(store, class_id, data, mappings)
        assert len(preview.grade_changes) == 1

        result = execute_import(store, preview.grade_changes, class_id=class_id)
        assert result.success
        assert result.processed_grades == 1
        assert store.get_progress(seeded["alice"]["id"], seeded["hw1"]["id"])["status"] == 3

        assert generate_preview(store, class_id, data, mappings).grade_changes == []

    def test_failure_is_isolated_per_item(self, store, seeded):
        class_id = seeded["class"]["id"]
        alice = seeded["alice"]
        targets = [store.create_assignment(class_id, f"Quiz {i}", "status") for i in range(1, 6)]
        changes = [
            GradeChange(student_id=alice["id"], student_name="Alice Johnson",
                        assignment_id=a["id"], assignment_name=a["name"],
                        old_value="Not Started", new_value="Completed", converted_status=2)
            for a in targets
        ]
        store.delete_assignment(targets[2]["id"])

        result = execute_import(store, changes, class_id=class_id)

        assert result.processed_grades == 4
        assert result.processed_students == 1
        assert not result.success
        assert len(result.errors) == 1
        assert result.errors[0].assignment == "Quiz 3"
        assert "no longer exists" in result.errors[0].reason
        for i in (0, 1, 3, 4):
            assert store.get_progress(alice["id"], targets[i]["id"])["status"] == 2

    def test_other_class_assignment_rejected(self, store, seeded):
        other_class = store.create_class("Chemistry", seeded["other_instructor"]["id"])
        foreign = store.create_assignment(other_class["id"], "Titration", "status")
        change = GradeChange(student_id=seeded["alice"]["id"], student_name="Alice Johnson",
                             assignment_id=foreign["id"], assignment_name="Titration",
                             new_value="Completed", converted_status=2)
        result = execute_import(store, [change], class_id=seeded["class"]["id"])
        assert result.processed_grades == 0
        assert result.errors[0].reason == "Assignment belongs to another class"

    def test_absences_applied(self, store, seeded):
        class_id = seeded["class"]["id"]
        change = AbsenceChange(student_id=seeded["bob"]["id"], student_name="Bob Smith",
                               class_id=class_id, current_absences=0, new_absences=3)
        result = execute_import(store, [], [change], class_id=class_id)
        assert result.processed_absences == 1
        assert result.processed_students == 1
        assert store.get_student_absences(seeded["bob"]["id"], class_id) == 3

    def test_audit_entry_per_change(self, store, seeded, canvas_csv, standard_mappings):
        class_id = seeded["class"]["id"]
        preview = generate_preview(store, class_id, _normalize(canvas_csv), standard_mappings)
        execute_import(store, preview.grade_changes, preview.absence_changes, user="1", class_id=class_id)

        logs = get_audit_logs()
        assert len(logs) == 4
        assert all(entry["action"] == "UPDATE" and entry["user"] == "1" for entry in logs)
        assert sum(entry["details"].startswith("attendance:") for entry in logs) == 1

    def test_grade_change_is_immutable(self):
        change = GradeChange(student_id=1, student_name="A", assignment_id=2,
                             assignment_name="HW1", new_value="Completed", converted_status=2)
        with pytest.raises(Exception):
            change.new_value = "Excellent"

    def test_student_outside_class_rejected(self, store, seeded):
        outsider = seeded["other_instructor"]
        change = GradeChange(student_id=outsider["id"], student_name="Tom Chen",
                             assignment_id=seeded["hw1"]["id"], assignment_name="HW1",
                             new_value="Excellent", converted_status=3)
        result = execute_import(store, [change], class_id=seeded["class"]["id"])
        assert not result.success
        assert result.errors[0].reason == "Student is not enrolled in this class"
        assert store.get_progress(outsider["id"], seeded["hw1"]["id"]) is None

    def test_unknown_student_rejected(self, store, seeded):
        change = GradeChange(student_id=9999, student_name="Ghost",
                             assignment_id=seeded["hw1"]["id"], assignment_name="HW1",
                             new_value="Excellent", converted_status=3)
        result = execute_import(store, [change], class_id=seeded["class"]["id"])
        assert "no longer exists" in result.errors[0].reason

    @pytest.mark.parametrize("status,numeric", [(99, None), (-1, None), (None, 4.5), (None, -0.1)])
    def test_out_of_range_value_rejected(self, store, seeded, status, numeric):
        alice = seeded["alice"]
        target = seeded["hw1"] if status is not None else seeded["lab"]
        change = GradeChange(student_id=alice["id"], student_name="Alice Johnson",
                             assignment_id=target["id"], assignment_name=target["name"],
                             new_value="?", converted_status=status, converted_numeric=numeric)
        before = store.get_progress(alice["id"], target["id"])

        result = execute_import(store, [change], class_id=seeded["class"]["id"])

        assert result.processed_grades == 0
        assert "outside" in result.errors[0].reason
        assert store.get_progress(alice["id"], target["id"]) == before

    def test_absence_for_student_outside_class(self, store, seeded):
        class_id = seeded["class"]["id"]
        change = AbsenceChange(student_id=seeded["other_instructor"]["id"], student_name="Tom Chen",
                               class_id=class_id, current_absences=0, new_absences=3)
        result = execute_import(store, [], [change], class_id=class_id)
        assert result.processed_absences == 0
        assert result.errors[0].assignment == "Absences"
