"""
Matches students from an imported grade sheet to enrolled students.

Strategies run in order of reliability: username, email, exact name,
fuzzy name.
"""
from typing import List, Optional

from gradeportal.services.fuzzy_matcher import normalize_string, string_similarity
from gradeportal.services.import_models import NormalizedStudent, StudentMatchResult


def normalize_name(name: str) -> str:
    """Lowercase, collapse whitespace, and turn "Last, First" into "First Last"."""
    normalized = normalize_string(name)
    if ',' in normalized:
        parts = [p.strip() for p in normalized.split(',')]
        if len(parts) == 2:
            normalized = f"{parts[1]} {parts[0]}"
    return normalized


class StudentMatcher:

    def __init__(self, enrolled_students: List[dict], threshold: int = 80):
        self.enrolled_students = enrolled_students
        self.threshold = threshold

    def match_student(self, csv_student: NormalizedStudent) -> StudentMatchResult:
        if csv_student.username:
            match = self._find_by_username(csv_student.username)
            if match:
                return self._result(csv_student, match, 'exact_username', 100)

        if csv_student.email:
            match = self._find_by_email(csv_student.email)
            if match:
                return self._result(csv_student, match, 'exact_email', 100)

        if csv_student.display_name:
            match = self._find_by_exact_name(csv_student.display_name)
            if match:
                return self._result(csv_student, match, 'exact_name', 95)

            match, confidence = self._find_by_fuzzy_name(csv_student.display_name)
            if match:
                return self._result(csv_student, match, 'fuzzy_name', confidence)

        return self._result(csv_student, None, 'not_found', 0)

    def match_all(self, csv_students: List[NormalizedStudent]) -> List[StudentMatchResult]:
        return [self.match_student(s) for s in csv_students]

    def _find_by_username(self, username: str) -> Optional[dict]:
        wanted = username.lower().strip()
        for student in self.enrolled_students:
            if student["username"].lower().strip() == wanted:
                return student
        return None

    def _find_by_email(self, email: str) -> Optional[dict]:
        wanted = email.lower().strip()
        for student in self.enrolled_students:
            student_email = (student.get("email") or "").lower().strip()
            if student_email == wanted or student["username"].lower().strip() == wanted:
                return student
        return None

    def _find_by_exact_name(self, name: str) -> Optional[dict]:
        wanted = normalize_name(name)
        for student in self.enrolled_students:
            if normalize_name(student["full_name"]) == wanted:
                return student
        return None

    def _find_by_fuzzy_name(self, name: str):
        wanted = normalize_name(name)
        best = None
        best_score = 0
        for student in self.enrolled_students:
            score = string_similarity(wanted, normalize_name(student["full_name"]))
            if score >= self.threshold and score > best_score:
                best = student
                best_score = score
        return best, best_score

    @staticmethod
    def _result(csv_student, student, match_type, confidence) -> StudentMatchResult:
        return StudentMatchResult(
            csv_student=csv_student,
            matched_student_id=student["id"] if student else None,
            matched_student_name=student["full_name"] if student else None,
            match_type=match_type,
            confidence=confidence,
        )
