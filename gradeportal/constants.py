"""
Shared constants for assignment status, roles and grade contract levels.
"""

# Progress status values for status-scored assignments
NOT_STARTED = 0
IN_PROGRESS = 1
COMPLETED = 2
EXCELLENT = 3

STATUS_LABELS = {
    NOT_STARTED: "Not Started",
    IN_PROGRESS: "In Progress",
    COMPLETED: "Completed",
    EXCELLENT: "Excellent",
}

# Numeric assignments are scored 0-4
MAX_NUMERIC_GRADE = 4.0

SCORING_STATUS = "status"
SCORING_NUMERIC = "numeric"
SCORING_TYPES = (SCORING_STATUS, SCORING_NUMERIC)

ROLE_INSTRUCTOR = "instructor"
ROLE_STUDENT = "student"

GRADE_LEVELS = ("A", "B", "C")


def status_label(status) -> str:
    """Human-readable label for a progress status."""
    return STATUS_LABELS.get(status, "Unknown")
