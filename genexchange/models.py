"""Profile snapshots consumed by the scorer."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

YOUTH = "youth"
SENIOR = "senior"
ROLES = (YOUTH, SENIOR)


def opposite_role(role: str) -> str:
    """Return the role a profile is matched against."""
    if role == YOUTH:
        return SENIOR
    if role == SENIOR:
        return YOUTH
    raise ValueError(f"Unknown role: {role!r}")


@dataclass(frozen=True)
class Offering:
    """Something a profile can teach or share (an asset)."""

    label: str
    description: str = ""
    id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Offering":
        label = data.get("label") or data.get("description") or ""
        return cls(
            label=label.strip(),
            description=data.get("description") or "",
            id=data.get("id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "label": self.label, "description": self.description}


@dataclass(frozen=True)
class Want(Offering):
    """Something a profile wishes to learn (a need)."""


@dataclass
class Profile:
    """A participant together with its offerings and wants."""

    id: str
    full_name: str
    age: int
    role: str
    bio: str = ""
    user_id: Optional[str] = None
    offerings: List[Offering] = field(default_factory=list)
    wants: List[Want] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        """Build a profile from a plain dict; missing item lists become empty."""
        profile_id = data.get("id") or data.get("user_id") or ""
        return cls(
            id=str(profile_id),
            user_id=data.get("user_id"),
            full_name=data.get("full_name", ""),
            age=data.get("age", 0),
            role=data.get("user_type") or data.get("role", ""),
            bio=data.get("bio") or "",
            offerings=[Offering.from_dict(o) for o in data.get("offerings") or []],
            wants=[Want.from_dict(w) for w in data.get("wants") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "full_name": self.full_name,
            "age": self.age,
            "user_type": self.role,
            "bio": self.bio,
            "offerings": [o.to_dict() for o in self.offerings],
            "wants": [w.to_dict() for w in self.wants],
        }
