"""
Local profile store backed by SQLite.

Supplies the scorer with profile snapshots and provides the handful of
writes needed to populate the store from the CLI or tests.

Invariant:
Reads return detached snapshots (models.Profile); callers never see
SQLAlchemy rows.
"""

import functools
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from sqlalchemy import literal_column
from sqlalchemy.exc import IntegrityError, OperationalError

from .database import AssetRow, CategoryRow, NeedRow, ProfileRow, get_session, init_database
from .labels import FREE_TEXT_CATEGORY_ID, resolve_label
from .logger import get_logger
from .models import Offering, Profile, Want, opposite_role
from .retry import RetryError, exponential_backoff, is_transient_error
from .schema import validate_profile_changes

logger = get_logger()


class StoreError(Exception):
    """A profile store could not complete a request."""


class ProfileNotFoundError(StoreError):
    """No profile exists for the requested user."""


class DuplicateProfileError(StoreError):
    """A profile already exists for the user."""


def _log_retry(attempt, exc, delay):
    logger.warning("Store busy, retrying", attempt=attempt, delay=delay, error=str(exc))


class _TransientOperationalError(Exception):
    pass


def _with_retry(func):
    """Retry transient SQLite errors, surface everything else as StoreError."""
    @exponential_backoff(max_retries=3, base_delay=0.2, exceptions=(_TransientOperationalError,), on_retry=_log_retry)
    def attempt(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except OperationalError as e:
            if is_transient_error(e):
                self.session.rollback()
                raise _TransientOperationalError(str(e)) from e
            raise

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        logger.record_store_call()
        try:
            return attempt(self, *args, **kwargs)
        except RetryError as e:
            self.session.rollback()
            logger.record_store_failure("RetryError")
            raise StoreError(f"Local store unavailable: {e}") from e
        except OperationalError as e:
            self.session.rollback()
            logger.record_store_failure(type(e).__name__)
            raise StoreError(f"Local store error: {e}") from e

    return wrapper


class ProfileStore:
    """SQLAlchemy-backed profile store."""

    def __init__(self, session):
        self.session = session

    @classmethod
    def open(cls, db_path: Path) -> "ProfileStore":
        """Create tables if needed and open a session on db_path."""
        init_database(db_path)
        return cls(get_session(db_path))

    def close(self) -> None:
        self.session.close()

    # Reads

    def _category_names(self) -> Dict[str, str]:
        return {c.id: c.name for c in self.session.query(CategoryRow).all()}

    def _snapshot(self, row: ProfileRow, categories: Dict[str, str]) -> Profile:
        offerings = []
        for asset in row.assets:
            label = resolve_label(asset.category_id, asset.description, categories)
            if label:
                offerings.append(Offering(label=label, description=asset.description or "", id=asset.id))
        wants = []
        for need in row.needs:
            label = resolve_label(need.category_id, need.description, categories)
            if label:
                wants.append(Want(label=label, description=need.description or "", id=need.id))
        return Profile(
            id=row.id,
            user_id=row.user_id,
            full_name=row.full_name,
            age=row.age,
            role=row.user_type,
            bio=row.bio or "",
            offerings=offerings,
            wants=wants,
        )

    def _get_row(self, user_id: str) -> ProfileRow:
        row = self.session.query(ProfileRow).filter_by(user_id=user_id).first()
        if row is None:
            raise ProfileNotFoundError(f"No profile for user: {user_id}")
        return row

    @_with_retry
    def load_profile(self, user_id: str) -> Profile:
        """Load one profile with its offerings and wants."""
        profile = self._snapshot(self._get_row(user_id), self._category_names())
        logger.record_profile_loaded()
        return profile

    @_with_retry
    def list_candidates(self, viewer: Profile, role: Optional[str] = None) -> List[Profile]:
        """
        Profiles the viewer may be matched with, in creation order.

        Args:
            viewer: The viewing profile (excluded from the result)
            role: Role to list; defaults to the opposite of the viewer's role
        """
        role = role or opposite_role(viewer.role)
        rows = (
            self.session.query(ProfileRow)
            .filter(ProfileRow.user_type == role, ProfileRow.id != viewer.id)
            .order_by(ProfileRow.created_at, literal_column("profiles.rowid"))
            .all()
        )
        categories = self._category_names()
        candidates = [self._snapshot(row, categories) for row in rows]
        logger.record_profile_loaded(len(candidates))
        return candidates

    @_with_retry
    def list_profiles(self, role: Optional[str] = None) -> List[Profile]:
        query = self.session.query(ProfileRow)
        if role:
            query = query.filter(ProfileRow.user_type == role)
        rows = query.order_by(ProfileRow.created_at, literal_column("profiles.rowid")).all()
        categories = self._category_names()
        return [self._snapshot(row, categories) for row in rows]

    # Writes

    def _category_id(self, name: str) -> str:
        if not name:
            return FREE_TEXT_CATEGORY_ID
        category = self.session.query(CategoryRow).filter_by(name=name).first()
        if category is None:
            category = CategoryRow(name=name)
            self.session.add(category)
            self.session.flush()
        return category.id

    @_with_retry
    def add_category(self, name: str) -> str:
        """Return the id of the named category, creating it if needed."""
        category_id = self._category_id(name.strip())
        self.session.commit()
        return category_id

    @_with_retry
    def create_profile(
        self,
        user_id: str,
        full_name: str,
        age: int,
        role: str,
        bio: str = "",
        offerings: Iterable[Offering] = (),
        wants: Iterable[Want] = (),
    ) -> Profile:
        """
        Create the single profile for a user, with any initial items.

        Initial items are stored against a category named by their label.

        Raises:
            DuplicateProfileError: If the user already has a profile
        """
        opposite_role(role)  # validates the role
        row = ProfileRow(user_id=user_id, user_type=role, full_name=full_name, age=age, bio=bio)
        self.session.add(row)
        try:
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateProfileError(f"Profile already exists for user: {user_id}") from e

        for item in offerings:
            self.session.add(self._item_row(AssetRow, row.id, item.label, item.description))
        for item in wants:
            self.session.add(self._item_row(NeedRow, row.id, item.label, item.description))
        self.session.commit()
        logger.info("Profile created", user_id=user_id, role=role)
        return self._snapshot(row, self._category_names())

    @_with_retry
    def update_profile(self, user_id: str, **changes) -> Profile:
        """
        Update name, age or bio. The role of a profile never changes.

        Raises:
            StoreError: On an attempt to change the role, an unknown field
                or an invalid value
        """
        row = self._get_row(user_id)
        roles = {changes.pop(key) for key in ("role", "user_type") if key in changes}
        if any(role != row.user_type for role in roles):
            raise StoreError("Profile role cannot be changed after creation")
        unknown = set(changes) - {"full_name", "age", "bio"}
        if unknown:
            raise StoreError(f"Unknown profile fields: {', '.join(sorted(unknown))}")
        errors = validate_profile_changes(changes)
        if errors:
            raise StoreError("; ".join(errors))
        for key, value in changes.items():
            setattr(row, key, value)
        self.session.commit()
        return self._snapshot(row, self._category_names())

    def _item_row(self, model, profile_id: str, label: str, description: str = "", free_text: bool = False):
        if free_text:
            # placeholder category; the phrase itself is the label
            return model(profile_id=profile_id, category_id=FREE_TEXT_CATEGORY_ID, description=label)
        return model(profile_id=profile_id, category_id=self._category_id(label), description=description or "")

    def _add_item(self, model, user_id: str, label: str, description: str, free_text: bool) -> str:
        row = self._get_row(user_id)
        item = self._item_row(model, row.id, label.strip(), description, free_text)
        self.session.add(item)
        self.session.commit()
        return item.id

    @_with_retry
    def add_offering(self, user_id: str, label: str, description: str = "", free_text: bool = False) -> str:
        """Add an offering to a user's profile and return its id.

        With free_text the label is stored as a phrase under the placeholder
        category instead of as a named category. The phrase occupies the
        description column, so any description passed alongside is ignored.
        """
        return self._add_item(AssetRow, user_id, label, description, free_text)

    @_with_retry
    def add_want(self, user_id: str, label: str, description: str = "", free_text: bool = False) -> str:
        """Add a want to a user's profile and return its id."""
        return self._add_item(NeedRow, user_id, label, description, free_text)

    def _remove_item(self, model, item_id: str) -> bool:
        deleted = self.session.query(model).filter_by(id=item_id).delete()
        self.session.commit()
        return deleted > 0

    @_with_retry
    def remove_offering(self, item_id: str) -> bool:
        return self._remove_item(AssetRow, item_id)

    @_with_retry
    def remove_want(self, item_id: str) -> bool:
        return self._remove_item(NeedRow, item_id)
