"""
Fuzzy matching of imported column names to existing assignments.

Similarity is a 0-100 score built on Levenshtein distance over normalized
strings (lowercased, trimmed, internal whitespace collapsed).
"""
import math
import re
from typing import List, Optional, Tuple

from gradeportal.services.import_models import AssignmentMapping

_WHITESPACE = re.compile(r'\s+')

CONFIDENT = "confident"
AMBIGUOUS = "ambiguous"
UNMATCHED = "unmatched"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_string(text: str) -> str:
    return _WHITESPACE.sub(' ', (text or '').lower().strip())


def levenshtein_distance(str1: str, str2: str) -> int:
    """Classic edit distance with unit insert/delete/substitute costs."""
    if len(str1) < len(str2):
        str1, str2 = str2, str1

    previous = list(range(len(str2) + 1))
    for i, c1 in enumerate(str1, 1):
        current = [i]
        for j, c2 in enumerate(str2, 1):
            if c1 == c2:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(previous[j], current[j - 1], previous[j - 1]))
        previous = current
    return previous[-1]


def string_similarity(str1: str, str2: str) -> int:
    """Percentage similarity (0-100) of two strings after normalization."""
    s1 = normalize_string(str1)
    s2 = normalize_string(str2)

    if not s1 or not s2:
        return 0
    if s1 == s2:
        return 100

    distance = levenshtein_distance(s1, s2)
    max_length = max(len(s1), len(s2))
    return round_half_up((1 - distance / max_length) * 100)


def best_assignment_match(column: str, assignments: List[dict]) -> Tuple[Optional[dict], int]:
    """Highest scoring assignment for a column.

    `assignments` must already be in a stable order; on equal scores the
    earliest one wins.
    """
    best = None
    best_score = 0
    for assignment in assignments:
        score = string_similarity(column, assignment["name"])
        if score > best_score:
            best = assignment
            best_score = score
    return best, best_score


def suggest_mappings(columns: List[str], assignments: List[dict],
                     threshold: int) -> List[AssignmentMapping]:
    """Propose one mapping per imported column.

    Scores at or above `threshold` are auto-selected. Lower non-zero scores
    are only suggested and left for the importing user to confirm.
    """
    mappings = []
    for column in columns:
        best, score = best_assignment_match(column, assignments)
        mapping = AssignmentMapping(canvas_column=column, score=score)
        if best is not None:
            mapping.suggested_assignment_id = best["id"]
            mapping.suggested_assignment_name = best["name"]
            if score >= threshold:
                mapping.assignment_id = best["id"]
                mapping.match_status = CONFIDENT
            else:
                mapping.match_status = AMBIGUOUS
        mappings.append(mapping)
    return mappings
