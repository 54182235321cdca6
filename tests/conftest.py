"""
Pytest configuration and shared fixtures.
"""

import pytest
import json
from pathlib import Path
from typing import Dict, Any

from genexchange.models import Offering, Profile, Want
from genexchange.storage import ProfileStore


def make_profile(pid: str, wants=(), offerings=(), role: str = "youth", name: str = "") -> Profile:
    """Build a profile snapshot from plain label lists."""
    return Profile(
        id=pid,
        user_id=f"user-{pid}",
        full_name=name or pid,
        age=30,
        role=role,
        wants=[Want(label=w) for w in wants],
        offerings=[Offering(label=o) for o in offerings],
    )


@pytest.fixture
def youth_viewer() -> Profile:
    """Youth who wants to learn cooking and can teach smartphone use."""
    return make_profile("v1", wants=["cooking"], offerings=["smartphone"], role="youth")


@pytest.fixture
def valid_profile_data() -> Dict[str, Any]:
    """Valid profile payload."""
    return {
        "user_id": "u-senior-1",
        "user_type": "senior",
        "full_name": "Kim Younghee",
        "age": 67,
        "bio": "Happy to talk with younger friends.",
        "offerings": [
            {"label": "cooking", "description": "fifty years of kimchi"},
            {"label": "knitting"},
        ],
        "wants": [
            {"label": "smartphone"},
        ],
    }


@pytest.fixture
def invalid_profile_data() -> Dict[str, Any]:
    """Invalid profile (missing name, bad role and age)."""
    return {
        "user_id": "u-2",
        "user_type": "mentor",
        "age": -3,
    }


@pytest.fixture
def profile_file(tmp_path, valid_profile_data) -> Path:
    path = tmp_path / "profile.json"
    path.write_text(json.dumps(valid_profile_data), encoding="utf-8")
    return path


@pytest.fixture
def store(tmp_path):
    """Empty local store on a temporary database."""
    s = ProfileStore.open(tmp_path / "test.db")
    yield s
    s.close()


@pytest.fixture
def populated_store(store):
    """Store with one youth viewer and three seniors in a known order."""
    store.create_profile(
        "youth-1", "Lee Seoyeon", 24, "youth",
        offerings=[Offering("smartphone"), Offering("video calls")],
        wants=[Want("cooking"), Want("knitting")],
    )
    store.create_profile(
        "senior-1", "Park Soonja", 70, "senior",
        offerings=[Offering("cooking")],
        wants=[Want("gardening")],
    )
    store.create_profile(
        "senior-2", "Choi Kyunghee", 68, "senior",
        offerings=[Offering("cooking"), Offering("knitting")],
        wants=[Want("smartphone"), Want("video calls")],
    )
    store.create_profile(
        "senior-3", "Kang Insook", 75, "senior",
        offerings=[Offering("gardening")],
        wants=[Want("smartphone")],
    )
    store.create_profile(
        "youth-2", "Jung Yejun", 29, "youth",
        offerings=[Offering("cooking")],
        wants=[Want("smartphone")],
    )
    return store


@pytest.fixture
def profile_factory():
    """Factory for profile snapshots built from label lists."""
    return make_profile
