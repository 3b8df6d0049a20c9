"""
Shared test fixtures for the grade portal.
Monkeypatches the store and audit log paths into a temp directory and seeds
one class with students, assignments and some stored progress.
"""
import os
import time

import jwt
import pytest

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")
TEST_SECRET = "test-secret-for-portal-tokens-0123456789"


@pytest.fixture
def fixtures_dir():
    """Return the path to the fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def canvas_csv():
    """The sample Canvas gradebook export as text."""
    with open(os.path.join(FIXTURES_DIR, "canvas_export.csv"), encoding="utf-8") as f:
        return f.read()


@pytest.fixture
def patch_paths(monkeypatch, tmp_path):
    """Point the store and audit log at tmp_path."""
    from gradeportal.config import config

    monkeypatch.setattr(config, "store_file", str(tmp_path / "portal.json"))
    monkeypatch.setattr(config, "audit_log_file", str(tmp_path / "audit.log"))
    monkeypatch.setenv("PORTAL_JWT_SECRET", TEST_SECRET)
    return tmp_path


@pytest.fixture
def store(patch_paths):
    from gradeportal.storage import get_store
    return get_store()


@pytest.fixture
def seeded(store):
    """A class with three students, four assignments and some progress.

    Stored progress:
    - Alice: HW1 Completed
    - Bob: HW2 In Progress, Lab Report 2.9
    """
    instructor = store.create_user("mrivera", "Maria Rivera", role="instructor",
                                   email="mrivera@school.edu")
    other = store.create_user("tchen", "Tom Chen", role="instructor")
    cls = store.create_class("Biology 101", instructor["id"])

    alice = store.create_user("ajohnson", "Alice Johnson", email="alice.johnson@school.edu")
    bob = store.create_user("bsmith", "Bob Smith", email="bob.smith@school.edu")
    carol = store.create_user("cwilliams", "Carol Williams")
    for student in (alice, bob, carol):
        store.enroll_student(cls["id"], student["id"])

    hw1 = store.create_assignment(cls["id"], "HW1", "status")
    hw2 = store.create_assignment(cls["id"], "HW2", "status")
    lab = store.create_assignment(cls["id"], "Lab Report", "numeric")
    final = store.create_assignment(cls["id"], "Final Project", "status")

    store.update_progress(alice["id"], hw1["id"], status=2)
    store.update_progress(bob["id"], hw2["id"], status=1)
    store.update_progress(bob["id"], lab["id"], numeric_grade=2.9)

    return {
        "instructor": instructor,
        "other_instructor": other,
        "class": cls,
        "alice": alice,
        "bob": bob,
        "carol": carol,
        "hw1": hw1,
        "hw2": hw2,
        "lab": lab,
        "final": final,
    }


@pytest.fixture
def standard_mappings(seeded):
    """Mappings for every column of the sample export."""
    from gradeportal.services.import_models import AssignmentMapping
    return [
        AssignmentMapping(canvas_column="HW1", assignment_id=seeded["hw1"]["id"], grading_type="status"),
        AssignmentMapping(canvas_column="HW2", assignment_id=seeded["hw2"]["id"], grading_type="status"),
        AssignmentMapping(canvas_column="Lab Report", assignment_id=seeded["lab"]["id"], grading_type="points"),
        AssignmentMapping(canvas_column="Absences", mapping_target="absences"),
    ]


def make_token(user_id, role="instructor", expires_in=3600):
    payload = {
        "sub": str(user_id),
        "aud": "authenticated",
        "user_role": role,
        "exp": int(time.time()) + expires_in,
    }
    return jwt.encode(payload, TEST_SECRET, algorithm="HS256")


@pytest.fixture
def app(patch_paths):
    from gradeportal.app import create_app
    flask_app = create_app()
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(seeded):
    """Bearer header for the class's instructor."""
    return {"Authorization": "Bearer " + make_token(seeded["instructor"]["id"])}
