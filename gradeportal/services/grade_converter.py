"""
Converts raw Canvas grade values into portal progress values.

Status assignments store a status from 0 (Not Started) to 3 (Excellent).
Numeric assignments store a score from 0 to 4.
"""
import math
import re

from gradeportal.constants import NOT_STARTED, IN_PROGRESS, COMPLETED, EXCELLENT, MAX_NUMERIC_GRADE
from gradeportal.services.import_models import GradeConversionConfig

EMPTY_VALUES = ('', '-', 'unsubmitted', 'n/a')
NUMERIC_TYPES = ('points', 'percentage')

LETTER_TO_NUMERIC = {
    'A+': 4.0, 'A': 4.0, 'A-': 3.7,
    'B+': 3.3, 'B': 3.0, 'B-': 2.7,
    'C+': 2.3, 'C': 2.0, 'C-': 1.7,
    'D+': 1.3, 'D': 1.0, 'D-': 0.7,
    'F': 0.0,
}

STATUS_TO_NUMERIC = {
    NOT_STARTED: 0.0,
    IN_PROGRESS: 2.0,
    COMPLETED: 3.0,
    EXCELLENT: 4.0,
}

# Checked in order, first hit wins. 'incomplete' and 'not submitted' hit the
# completed pattern, matching how the portal has always scored them.
_EXCELLENT_WORDS = re.compile(r'excellent|outstanding|exceptional|perfect', re.I)
_COMPLETED_WORDS = re.compile(r'complete|done|submitted|finished|passed|satisfactory', re.I)
_PROGRESS_WORDS = re.compile(r'progress|partial|incomplete|pending|started|working', re.I)
_MISSING_WORDS = re.compile(r'missing|not\s*submitted|absent|none|failed|0', re.I)


def _parse_number(raw_value: str):
    try:
        number = float(raw_value.strip().rstrip('%'))
    except ValueError:
        return None
    # 'inf' and '1e999' parse as floats but are not scores
    if not math.isfinite(number):
        return None
    return number


class GradeConverter:

    def __init__(self, conversion_config: GradeConversionConfig = None):
        self.config = conversion_config or GradeConversionConfig()

    def to_status(self, raw_value: str, grading_type: str) -> int:
        """Convert a Canvas grade to a status (0-3)."""
        value = (raw_value or '').lower().strip()
        if value in EMPTY_VALUES:
            return NOT_STARTED

        if grading_type in NUMERIC_TYPES:
            return self._numeric_to_status(value)
        if grading_type == 'letter':
            return self._letter_to_status(value)
        return self._text_to_status(value)

    def to_numeric(self, raw_value: str, grading_type: str) -> float:
        """Convert a Canvas grade to a numeric score (0-4)."""
        value = (raw_value or '').lower().strip()
        if value in EMPTY_VALUES:
            return 0.0

        if grading_type in NUMERIC_TYPES:
            number = _parse_number(value)
            if number is None:
                return STATUS_TO_NUMERIC[self._text_to_status(value)]
            # 0-100 scaled to 0-4, one decimal place
            scaled = math.floor(number / 100 * 4 * 10 + 0.5) / 10
            return max(0.0, min(MAX_NUMERIC_GRADE, scaled))
        if grading_type == 'letter':
            return self._letter_to_numeric(value)
        return STATUS_TO_NUMERIC[self._text_to_status(value)]

    def _numeric_to_status(self, value: str) -> int:
        number = _parse_number(value)
        if number is None:
            # Canvas complete/incomplete columns export words, not points
            return self._text_to_status(value)

        thresholds = self.config.status_thresholds
        if number >= thresholds.excellent:
            return EXCELLENT
        if number >= thresholds.completed:
            return COMPLETED
        if number >= thresholds.in_progress:
            return IN_PROGRESS
        if number > 0:
            return IN_PROGRESS
        return NOT_STARTED

    def _letter_to_status(self, value: str) -> int:
        letter = value.strip()[:1].upper()
        return self.config.letter_grade_map.get(letter, IN_PROGRESS)

    @staticmethod
    def _letter_to_numeric(value: str) -> float:
        letter = value.strip().upper()
        if letter in LETTER_TO_NUMERIC:
            return LETTER_TO_NUMERIC[letter]
        if letter[:1] in LETTER_TO_NUMERIC:
            return LETTER_TO_NUMERIC[letter[:1]]
        return 2.0

    @staticmethod
    def _text_to_status(value: str) -> int:
        if _EXCELLENT_WORDS.search(value):
            return EXCELLENT
        if _COMPLETED_WORDS.search(value):
            return COMPLETED
        if _PROGRESS_WORDS.search(value):
            return IN_PROGRESS
        if _MISSING_WORDS.search(value):
            return NOT_STARTED
        return IN_PROGRESS
