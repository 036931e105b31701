"""
Bones Backend — User Record
============================

What:  The unit of the managed collection.
Why:   A plain immutable record keeps the store free of any ORM or
       transport concerns; schemas convert it for the API.
Who:   Created by UserService.create_user(), held by UserStore.

Field Rules:
    - id: UUID string generated server-side, never reassigned
    - name / email: stored trimmed; email keeps the caller's casing
    - created_at: UTC with timezone (never naive datetimes)
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class User:
    """
    One user in the collection.

    Frozen so a snapshot handed out by List() cannot be edited behind the
    store's back.
    """

    name: str
    email: str
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def email_key(self) -> str:
        """Uniqueness key for email: trimmed and case-folded."""
        return normalize_email(self.email)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', created_at='{self.created_at}')>"


def normalize_email(email: str) -> str:
    return email.strip().casefold()
