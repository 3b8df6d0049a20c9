"""
Canvas gradebook import API routes.
Upload/parse, preview, and commit of grade imports for one class.
"""
import logging

from flask import Blueprint, request, jsonify, g
from pydantic import ValidationError

from gradeportal.config import config
from gradeportal.errors import MalformedInputError
from gradeportal.routes.class_routes import load_owned_class
from gradeportal.services.canvas_import import (
    normalize_canvas_export, generate_preview, execute_import,
)
from gradeportal.services.fuzzy_matcher import suggest_mappings
from gradeportal.services.grade_converter import GradeConverter
from gradeportal.services.import_models import (
    AbsenceChange, AssignmentMapping, GradeChange, NormalizedGradeData, ParseRequest,
)
from gradeportal.storage import get_store

logger = logging.getLogger(__name__)

canvas_import_bp = Blueprint('canvas_import', __name__)


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"Invalid request: {location} {first.get('msg', '')}".strip()


@canvas_import_bp.route('/api/classes/<int:class_id>/canvas/parse', methods=['POST'])
def parse_canvas_export(class_id):
    """Parse an uploaded Canvas CSV and suggest column mappings.

    Accepts a multipart `file` upload or a JSON body with `csvText`.
    An optional `threshold` overrides the auto-select score.
    """
    cls, error = load_owned_class(class_id)
    if error:
        return error

    if 'file' in request.files:
        raw = request.files['file'].read()
        try:
            csv_text = raw.decode('utf-8-sig')
        except UnicodeDecodeError:
            return jsonify({"error": "CSV file must be UTF-8 encoded"}), 400
        body = {"csvText": csv_text, "threshold": request.form.get('threshold', type=int)}
    else:
        body = request.get_json(silent=True) or {}

    try:
        parse_request = ParseRequest.model_validate(body)
    except ValidationError as e:
        return jsonify({"error": _validation_message(e)}), 400

    threshold = parse_request.threshold
    if threshold is None:
        threshold = config.assignment_match_threshold

    try:
        normalized = normalize_canvas_export(
            parse_request.csv_text, config.system_columns, config.summary_columns)
    except MalformedInputError as e:
        return jsonify({"error": str(e)}), 400

    assignments = get_store().get_assignments_by_class(class_id)
    mappings = suggest_mappings(normalized.assignments, assignments, threshold)

    return jsonify({
        "normalizedData": normalized.to_json_dict(),
        "mappings": [m.to_json_dict() for m in mappings],
        "threshold": threshold,
    })


@canvas_import_bp.route('/api/classes/<int:class_id>/canvas/preview', methods=['POST'])
def preview_canvas_import(class_id):
    """Generate a preview of the import without committing changes."""
    cls, error = load_owned_class(class_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict) or 'normalizedData' not in data or not isinstance(data.get('mappings'), list):
        return jsonify({"error": "Missing normalizedData or mappings list"}), 400

    try:
        normalized = NormalizedGradeData.model_validate(data['normalizedData'])
        mappings = [AssignmentMapping.model_validate(m) for m in data['mappings']]
    except ValidationError as e:
        return jsonify({"error": _validation_message(e)}), 400

    preview = generate_preview(
        get_store(), class_id, normalized, mappings,
        converter=GradeConverter(),
        student_threshold=config.student_match_threshold,
    )
    return jsonify(preview.to_json_dict())


@canvas_import_bp.route('/api/classes/<int:class_id>/canvas/import', methods=['POST'])
def commit_canvas_import(class_id):
    """Execute the import with the approved grade and absence changes."""
    cls, error = load_owned_class(class_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    grade_changes = data.get('gradeChanges') if isinstance(data, dict) else None
    if not isinstance(grade_changes, list):
        return jsonify({"error": "Missing or invalid gradeChanges"}), 400
    absence_changes = data.get('absenceChanges') or []
    if not isinstance(absence_changes, list):
        return jsonify({"error": "Invalid absenceChanges"}), 400

    try:
        changes = [GradeChange.model_validate(c) for c in grade_changes]
        absences = [AbsenceChange.model_validate(c) for c in absence_changes]
    except ValidationError as e:
        return jsonify({"error": _validation_message(e)}), 400

    result = execute_import(get_store(), changes, absences, user=g.user_id, class_id=class_id)
    logger.info("Canvas import completed for class %s by %s", class_id, g.user_id)
    return jsonify(result.to_json_dict())
