"""
Configuration management for the grade portal backend.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Data files
DATA_DIR = Path(os.getenv("PORTAL_DATA_DIR", str(Path.home() / ".gradeportal_data")))
STORE_FILE = DATA_DIR / "portal.json"
AUDIT_LOG_FILE = DATA_DIR / "audit.log"

# Auth
JWT_SECRET_ENV = "PORTAL_JWT_SECRET"
JWT_AUDIENCE = "authenticated"

# Server configuration
HOST = os.getenv("PORTAL_HOST", "0.0.0.0")
PORT = int(os.getenv("PORTAL_PORT", "5000"))
DEBUG = os.getenv("PORTAL_DEBUG", "").lower() in ("1", "true", "yes")
LOG_LEVEL = os.getenv("PORTAL_LOG_LEVEL", "INFO")

# Canvas gradebook export columns that identify the student, matched by
# exact case-insensitive name
CANVAS_SYSTEM_COLUMNS = [
    'Student',
    'Name',
    'ID',
    'SIS User ID',
    'SIS Login ID',
    'Section',
    'Integration ID',
    'Root Account',
]

# Canvas summary columns, matched by case-insensitive substring
CANVAS_SUMMARY_COLUMNS = [
    'Current Score',
    'Final Score',
    'Current Grade',
    'Final Grade',
    'Current Points',
    'Final Points',
    'Unposted Current Score',
    'Unposted Final Score',
    'Unposted Current Grade',
    'Unposted Final Grade',
]

# Matching thresholds (0-100 similarity scores)
ASSIGNMENT_MATCH_THRESHOLD = 70
STUDENT_MATCH_THRESHOLD = 80


class Config:
    """Application configuration class."""

    def __init__(self):
        self.store_file = str(STORE_FILE)
        self.audit_log_file = str(AUDIT_LOG_FILE)
        self.system_columns = list(CANVAS_SYSTEM_COLUMNS)
        self.summary_columns = list(CANVAS_SUMMARY_COLUMNS)
        self.assignment_match_threshold = ASSIGNMENT_MATCH_THRESHOLD
        self.student_match_threshold = STUDENT_MATCH_THRESHOLD

    def to_dict(self):
        return {
            "store_file": self.store_file,
            "audit_log_file": self.audit_log_file,
            "system_columns": self.system_columns,
            "summary_columns": self.summary_columns,
            "assignment_match_threshold": self.assignment_match_threshold,
            "student_match_threshold": self.student_match_threshold,
        }

    def update(self, data: dict):
        for key, value in data.items():
            if hasattr(self, key):
                setattr(self, key, value)


# Global config instance
config = Config()
