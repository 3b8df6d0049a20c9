"""
Class roster, assignment and attendance routes.
Read-only views the import dialog uses before and after an import.
"""
from flask import Blueprint, request, jsonify, g

from gradeportal.audit import get_audit_logs
from gradeportal.auth import is_instructor
from gradeportal.storage import get_store

class_bp = Blueprint('classes', __name__)


def load_owned_class(class_id):
    """Return (class, None) for the requesting instructor's class, else (None, error response)."""
    if not is_instructor():
        return None, (jsonify({"error": "Instructor access required"}), 403)

    cls = get_store().get_class(class_id)
    if cls is None:
        return None, (jsonify({"error": "Class not found"}), 404)
    if str(cls["instructor_id"]) != str(g.user_id):
        return None, (jsonify({"error": "Not authorized"}), 403)
    return cls, None


@class_bp.route('/api/health')
def health():
    return jsonify({"status": "ok"})


@class_bp.route('/api/classes/<int:class_id>/assignments')
def list_class_assignments(class_id):
    """Assignments in display order (the order import matching uses)."""
    cls, error = load_owned_class(class_id)
    if error:
        return error
    return jsonify({"assignments": get_store().get_assignments_by_class(class_id)})


@class_bp.route('/api/classes/<int:class_id>/students/progress')
def list_student_progress(class_id):
    """Enrolled students with their progress records."""
    cls, error = load_owned_class(class_id)
    if error:
        return error

    store = get_store()
    progress = store.get_progress_for_class(class_id)
    students = []
    for student in store.get_enrolled_students(class_id):
        students.append({
            "student": student,
            "progress": [p for p in progress if p["student_id"] == student["id"]],
            "absences": store.get_student_absences(student["id"], class_id),
        })
    return jsonify({"students": students})


@class_bp.route('/api/classes/<int:class_id>/attendance')
def list_class_attendance(class_id):
    cls, error = load_owned_class(class_id)
    if error:
        return error
    return jsonify({"attendance": get_store().get_attendance_for_class(class_id)})


@class_bp.route('/api/audit-log', methods=['GET'])
def get_audit_log():
    """Recent grade and attendance change entries."""
    if not is_instructor():
        return jsonify({"error": "Instructor access required"}), 403

    limit = request.args.get('limit', 100, type=int)
    logs = get_audit_logs(limit)

    return jsonify({
        "logs": logs,
        "total": len(logs),
    })
