"""
Grade Portal Services
=====================

Canvas grade import pipeline.

Services:
- csv_parser: grade sheet tokenizing
- column_classifier: identity / summary / assignment columns
- fuzzy_matcher: column to assignment similarity matching
- student_matcher: CSV student to enrolled student matching
- grade_converter: Canvas values to portal status or score
- canvas_import: preview and commit of an import
"""

__all__ = [
    'csv_parser',
    'column_classifier',
    'fuzzy_matcher',
    'student_matcher',
    'grade_converter',
    'canvas_import',
]
