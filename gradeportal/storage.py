"""
JSON Document Store
===================
Persists users, classes, enrollments, assignments, grade contracts,
progress records and attendance in a single local JSON file.

Every public method loads the document, works on it and (for writes) saves
it back while holding the store lock, so each call sees a consistent view.
"""

import os
import json
import logging
import threading
from datetime import datetime
from typing import List, Optional

from .config import config
from .constants import SCORING_TYPES, GRADE_LEVELS, ROLE_STUDENT
from .errors import UnresolvedReferenceError

logger = logging.getLogger(__name__)

TABLES = (
    "users",
    "classes",
    "enrollments",
    "assignments",
    "grade_contracts",
    "progress",
    "attendance",
)


def _empty_document():
    doc = {table: [] for table in TABLES}
    doc["next_ids"] = {table: 1 for table in TABLES}
    return doc


class PortalStore:
    """File-backed store with auto-increment integer ids per table."""

    def __init__(self, path: str):
        self.path = str(path)
        self._lock = threading.RLock()

    # ── document I/O ────────────────────────────────────────────

    def _load(self) -> dict:
        if not os.path.exists(self.path):
            return _empty_document()
        with open(self.path, 'r') as f:
            doc = json.load(f)
        for table in TABLES:
            doc.setdefault(table, [])
            doc.setdefault("next_ids", {}).setdefault(table, 1)
        return doc

    def _save(self, doc: dict):
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        tmp_path = self.path + ".tmp"
        with open(tmp_path, 'w') as f:
            json.dump(doc, f, indent=2)
        os.replace(tmp_path, self.path)

    @staticmethod
    def _insert(doc: dict, table: str, record: dict) -> dict:
        record["id"] = doc["next_ids"][table]
        doc["next_ids"][table] += 1
        doc[table].append(record)
        return record

    @staticmethod
    def _find(doc: dict, table: str, record_id) -> Optional[dict]:
        for record in doc[table]:
            if record["id"] == record_id:
                return record
        return None

    # ── users ───────────────────────────────────────────────────

    def create_user(self, username: str, full_name: str, role: str = ROLE_STUDENT,
                    email: str = None) -> dict:
        with self._lock:
            doc = self._load()
            lowered = username.lower()
            if any(u["username"].lower() == lowered for u in doc["users"]):
                raise ValueError(f"Username already exists: {username}")
            user = self._insert(doc, "users", {
                "username": username,
                "full_name": full_name,
                "role": role,
                "email": email,
            })
            self._save(doc)
            return dict(user)

    def get_user(self, user_id: int) -> Optional[dict]:
        with self._lock:
            user = self._find(self._load(), "users", user_id)
            return dict(user) if user else None

    # ── classes ─────────────────────────────────────────────────

    def create_class(self, name: str, instructor_id: int, description: str = None,
                     semester_start_date: str = None) -> dict:
        with self._lock:
            doc = self._load()
            cls = self._insert(doc, "classes", {
                "name": name,
                "instructor_id": instructor_id,
                "description": description,
                "semester_start_date": semester_start_date,
                "is_archived": False,
            })
            self._save(doc)
            return dict(cls)

    def get_class(self, class_id: int) -> Optional[dict]:
        with self._lock:
            cls = self._find(self._load(), "classes", class_id)
            return dict(cls) if cls else None

    # ── assignments ─────────────────────────────────────────────

    def create_assignment(self, class_id: int, name: str, scoring_type: str = "status",
                          module_group: str = None, due_date: str = None) -> dict:
        if scoring_type not in SCORING_TYPES:
            raise ValueError(f"Unknown scoring type: {scoring_type}")
        with self._lock:
            doc = self._load()
            if self._find(doc, "classes", class_id) is None:
                raise UnresolvedReferenceError("class", class_id)
            siblings = [a for a in doc["assignments"] if a["class_id"] == class_id]
            next_order = max((a["display_order"] for a in siblings), default=-1) + 1
            assignment = self._insert(doc, "assignments", {
                "class_id": class_id,
                "name": name,
                "scoring_type": scoring_type,
                "module_group": module_group,
                "due_date": due_date,
                "display_order": next_order,
            })
            self._save(doc)
            return dict(assignment)

    def get_assignment(self, assignment_id: int) -> Optional[dict]:
        with self._lock:
            assignment = self._find(self._load(), "assignments", assignment_id)
            return dict(assignment) if assignment else None

    def get_assignments_by_class(self, class_id: int) -> List[dict]:
        """Assignments for a class in display order, ties by creation sequence."""
        with self._lock:
            doc = self._load()
            assignments = [dict(a) for a in doc["assignments"] if a["class_id"] == class_id]
        return sorted(assignments, key=lambda a: (a["display_order"], a["id"]))

    def delete_assignment(self, assignment_id: int):
        with self._lock:
            doc = self._load()
            doc["assignments"] = [a for a in doc["assignments"] if a["id"] != assignment_id]
            doc["progress"] = [p for p in doc["progress"] if p["assignment_id"] != assignment_id]
            self._save(doc)

    # ── grade contracts ─────────────────────────────────────────

    def create_grade_contract(self, class_id: int, grade: str, assignment_ids: List[int],
                              required_engagement_intentions: int = 0,
                              max_absences: int = 0) -> dict:
        if grade not in GRADE_LEVELS:
            raise ValueError(f"Unknown grade level: {grade}")
        with self._lock:
            doc = self._load()
            versions = [c["version"] for c in doc["grade_contracts"]
                        if c["class_id"] == class_id and c["grade"] == grade]
            contract = self._insert(doc, "grade_contracts", {
                "class_id": class_id,
                "grade": grade,
                "version": max(versions, default=0) + 1,
                "assignments": [{"id": a_id} for a_id in assignment_ids],
                "required_engagement_intentions": required_engagement_intentions,
                "max_absences": max_absences,
            })
            self._save(doc)
            return dict(contract)

    def get_contracts_by_class(self, class_id: int) -> List[dict]:
        with self._lock:
            doc = self._load()
            return [dict(c) for c in doc["grade_contracts"] if c["class_id"] == class_id]

    # ── enrollment ──────────────────────────────────────────────

    def enroll_student(self, class_id: int, student_id: int):
        with self._lock:
            doc = self._load()
            if self._find(doc, "classes", class_id) is None:
                raise UnresolvedReferenceError("class", class_id)
            if self._find(doc, "users", student_id) is None:
                raise UnresolvedReferenceError("student", student_id)
            already = any(e["class_id"] == class_id and e["student_id"] == student_id
                          for e in doc["enrollments"])
            if not already:
                self._insert(doc, "enrollments", {"class_id": class_id, "student_id": student_id})
                self._save(doc)

    def get_enrolled_students(self, class_id: int) -> List[dict]:
        with self._lock:
            doc = self._load()
            student_ids = [e["student_id"] for e in doc["enrollments"] if e["class_id"] == class_id]
            students = [self._find(doc, "users", s_id) for s_id in student_ids]
        return [dict(s) for s in students if s is not None]

    # ── progress ────────────────────────────────────────────────

    def get_progress_for_class(self, class_id: int) -> List[dict]:
        with self._lock:
            doc = self._load()
            assignment_ids = {a["id"] for a in doc["assignments"] if a["class_id"] == class_id}
            return [dict(p) for p in doc["progress"] if p["assignment_id"] in assignment_ids]

    def get_progress(self, student_id: int, assignment_id: int) -> Optional[dict]:
        with self._lock:
            for record in self._load()["progress"]:
                if record["student_id"] == student_id and record["assignment_id"] == assignment_id:
                    return dict(record)
        return None

    def update_progress(self, student_id: int, assignment_id: int, status: int = None,
                        numeric_grade: float = None) -> dict:
        """Create or update a progress record.

        Raises UnresolvedReferenceError when the student or assignment no
        longer exists.
        """
        with self._lock:
            doc = self._load()
            if self._find(doc, "assignments", assignment_id) is None:
                raise UnresolvedReferenceError("assignment", assignment_id,
                                               f"Assignment {assignment_id} no longer exists")
            if self._find(doc, "users", student_id) is None:
                raise UnresolvedReferenceError("student", student_id,
                                               f"Student {student_id} no longer exists")

            record = None
            for existing in doc["progress"]:
                if existing["student_id"] == student_id and existing["assignment_id"] == assignment_id:
                    record = existing
                    break
            if record is None:
                record = self._insert(doc, "progress", {
                    "student_id": student_id,
                    "assignment_id": assignment_id,
                    "status": None,
                    "numeric_grade": None,
                    "attempts": 0,
                })
            if status is not None:
                record["status"] = status
            if numeric_grade is not None:
                record["numeric_grade"] = numeric_grade
            record["attempts"] = record.get("attempts", 0) + 1
            record["last_updated"] = datetime.now().isoformat()
            self._save(doc)
            return dict(record)

    # ── attendance ──────────────────────────────────────────────

    def get_attendance_for_class(self, class_id: int) -> List[dict]:
        with self._lock:
            doc = self._load()
            records = [dict(r) for r in doc["attendance"] if r["class_id"] == class_id]
        return sorted(records, key=lambda r: (r["date"], r["id"]))

    def get_student_absences(self, student_id: int, class_id: int) -> int:
        with self._lock:
            return sum(1 for r in self._load()["attendance"]
                       if r["student_id"] == student_id and r["class_id"] == class_id
                       and not r["is_present"])

    def set_student_absences(self, student_id: int, class_id: int, absences: int):
        """Replace a student's absence records with `absences` new ones."""
        if absences < 0:
            raise ValueError("Absence count cannot be negative")
        with self._lock:
            doc = self._load()
            if self._find(doc, "classes", class_id) is None:
                raise UnresolvedReferenceError("class", class_id)
            if self._find(doc, "users", student_id) is None:
                raise UnresolvedReferenceError("student", student_id,
                                               f"Student {student_id} no longer exists")
            doc["attendance"] = [
                r for r in doc["attendance"]
                if not (r["student_id"] == student_id and r["class_id"] == class_id
                        and not r["is_present"])
            ]
            now = datetime.now().isoformat()
            for _ in range(absences):
                self._insert(doc, "attendance", {
                    "student_id": student_id,
                    "class_id": class_id,
                    "date": now,
                    "is_present": False,
                    "notes": "Manual absence count",
                    "created_at": now,
                })
            self._save(doc)


_store = None


def get_store() -> PortalStore:
    """Get or create the process-wide store for the configured file."""
    global _store
    if _store is None or _store.path != config.store_file:
        _store = PortalStore(config.store_file)
        logger.info("Using store file %s", config.store_file)
    return _store
