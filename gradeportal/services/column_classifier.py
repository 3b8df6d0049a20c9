"""
Splits grade sheet headers into identity, summary and assignment columns.
"""
from typing import Iterable, List

from gradeportal.services.import_models import ColumnClassification


def classify_columns(headers: List[str], system_columns: Iterable[str],
                     summary_columns: Iterable[str]) -> ColumnClassification:
    """Classify headers in their original order.

    Identity columns match a system column name exactly (case-insensitive).
    Summary columns contain a summary column name (case-insensitive).
    Everything else is a candidate assignment column.
    """
    system_names = {name.lower().strip() for name in system_columns}
    summary_names = [name.lower().strip() for name in summary_columns]

    result = ColumnClassification()
    for header in headers:
        normalized = header.lower().strip()
        if not normalized:
            continue
        if normalized in system_names:
            result.identity.append(header)
        elif any(name in normalized for name in summary_names):
            result.summary.append(header)
        else:
            result.assignments.append(header)
    return result


def extract_assignment_columns(headers: List[str], system_columns: Iterable[str],
                               summary_columns: Iterable[str]) -> List[str]:
    return classify_columns(headers, system_columns, summary_columns).assignments
