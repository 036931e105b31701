"""
Bones Backend — User Service (Business Logic)
==============================================

What:  Sole authority over the user collection: list, get, create, delete.
Why:   Keeps validation and the error taxonomy in one place, independent of
       HTTP. Route handlers only translate between JSON and these calls.
How:   Validates input, builds immutable User records, and delegates the
       atomic check-then-write steps to the injected UserStore.
Who:   Called by route handlers; created by the app factory with its store.

Error Taxonomy (all terminal, none mutate state):
    ValidationError   → missing/blank field, malformed email, too long
    DuplicateKeyError → email already present (case-insensitive, trimmed)
    NotFoundError     → unknown id on get/delete

The service has no retry policy; retries belong to the caller.
"""

import logging
import re
from typing import List, Optional

from bones.config import settings
from bones.exceptions import NotFoundError, ValidationError
from bones.models.user import User
from bones.schemas.user import UserCreate
from bones.store import UserStore

logger = logging.getLogger(__name__)

# local part, "@", then a domain with at least one dot; no whitespace anywhere
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class UserService:
    """
    Business logic layer for user operations.

    Responsibilities:
        - list_users(): Snapshot of the collection in insertion order
        - get_user(): Single user lookup with not-found handling
        - create_user(): Validate, assign id/timestamp, append atomically
        - delete_user(): Remove by id or raise NotFoundError
    """

    def __init__(
        self,
        store: UserStore,
        name_max_length: Optional[int] = None,
        email_max_length: Optional[int] = None,
    ):
        self.store = store
        self.name_max_length = name_max_length or settings.name_max_length
        self.email_max_length = email_max_length or settings.email_max_length

    def list_users(self) -> List[User]:
        """
        Return every user in insertion order.

        Never fails; an empty collection gives an empty list. Two calls with
        no mutation in between return equal sequences.
        """
        return self.store.snapshot()

    def get_user(self, user_id: str) -> User:
        """
        Raises:
            NotFoundError: no user with this id
        """
        user = self.store.get(user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=user_id)
        return user

    def create_user(self, data: UserCreate) -> User:
        """
        Validate `data` and append a new user.

        Workflow:
            1. Trim and validate name (required, length)
            2. Trim and validate email (required, shape, length)
            3. Build the record (fresh UUID, UTC timestamp)
            4. Store.add(): uniqueness check + append as one locked step

        Raises:
            ValidationError: field missing, blank or malformed
            DuplicateKeyError: email already taken; collection unchanged
        """
        name = self._require("name", data.name, self.name_max_length)
        email = self._require("email", data.email, self.email_max_length)
        if not EMAIL_PATTERN.match(email):
            raise ValidationError(
                message="email must look like name@example.com",
                field="email",
            )

        user = self.store.add(User(name=name, email=email))
        logger.info("User created: %s", user.id)
        return user

    def delete_user(self, user_id: str) -> User:
        """
        Remove a user.

        Deleting the same id twice is not a no-op: the second call raises
        NotFoundError.
        """
        user = self.store.remove(user_id)
        logger.info("User deleted: %s", user_id)
        return user

    @staticmethod
    def _require(field: str, value: Optional[str], max_length: int) -> str:
        """Trimmed value of a required string field."""
        if value is None:
            raise ValidationError(message=f"{field} is required", field=field)
        trimmed = value.strip()
        if not trimmed:
            raise ValidationError(message=f"{field} must not be blank", field=field)
        if len(trimmed) > max_length:
            raise ValidationError(
                message=f"{field} must be at most {max_length} characters",
                field=field,
                context={"max_length": max_length},
            )
        return trimmed
