import shutil
from pathlib import Path

import pytest

from backend import config
from velvet_rope.models import Attendee
from velvet_rope.store import StageStore

TEST_DATA_DIR = Path("data-tests")

INDUSTRIES = ["Fintech", "Biotech", "Climate Tech", "Gaming"]


@pytest.fixture(autouse=True)
def clean_test_data():
    """Wipe and re-init data-tests/ before every test."""
    if TEST_DATA_DIR.exists():
        shutil.rmtree(TEST_DATA_DIR)
    config.init_storage(TEST_DATA_DIR)
    yield
    # leave data-tests around after tests for inspection; CI can ignore it


def make_attendee(i: int, **overrides) -> Attendee:
    fields = {
        "id": str(i),
        "first_name": f"First{i}",
        "last_name": f"Last{i}",
        "email": f"person{i}@example.com",
        "company": f"Company {i}",
        "title": "Engineer",
        "industry": INDUSTRIES[(i - 1) % len(INDUSTRIES)],
        "years_experience": i,
        "skills": "Python;SQL;Kubernetes",
        "interests": "Chess;Hiking",
    }
    fields.update(overrides)
    return Attendee(**fields)


@pytest.fixture
def store(tmp_path) -> StageStore:
    return StageStore(tmp_path)


@pytest.fixture
def attendees() -> list[Attendee]:
    """Fifteen attendees with ids "1".."15"."""
    return [make_attendee(i) for i in range(1, 16)]
