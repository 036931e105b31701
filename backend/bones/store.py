"""
Bones Backend — In-Memory User Store
=====================================

What:  The authoritative, insertion-ordered collection of users.
Why:   Owns the only shared mutable state on the server, so it also owns
       the mutual-exclusion discipline around it.
How:   A list (order) plus an email index (uniqueness) guarded by one lock.
Who:   Created by the app factory and injected into UserService.
When:  Lives for the lifetime of one server process; nothing is persisted.

Concurrency:
    Every method holds the lock for its whole read-check-write sequence.
    That closes the check-then-act race in add(): two concurrent adds with
    the same email cannot both pass the uniqueness check, because the check
    and the append happen inside one critical section.

    Readers take the lock only long enough to copy the list, so they never
    observe a half-appended or half-removed user. Critical sections never
    await or do I/O; a threading.Lock therefore serves both async handlers
    and threadpool-run sync code.
"""

import logging
import threading
from typing import Dict, List, Optional

from bones.exceptions import DuplicateKeyError, NotFoundError
from bones.models.user import User

logger = logging.getLogger(__name__)


class UserStore:
    """Lock-guarded container for the user collection."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: List[User] = []
        # email_key → user id
        self._email_index: Dict[str, str] = {}

    def snapshot(self) -> List[User]:
        """Copy of the collection in insertion order."""
        with self._lock:
            return list(self._users)

    def get(self, user_id: str) -> Optional[User]:
        with self._lock:
            return self._find(user_id)

    def add(self, user: User) -> User:
        """
        Append `user` unless its email is already taken.

        Raises:
            DuplicateKeyError: email (case-insensitive) already present;
                the collection is left unchanged.
        """
        key = user.email_key
        with self._lock:
            if key in self._email_index:
                raise DuplicateKeyError(field="email", value=user.email.strip())
            self._users.append(user)
            self._email_index[key] = user.id
            size = len(self._users)
        logger.debug("Stored user %s (collection size %d)", user.id, size)
        return user

    def remove(self, user_id: str) -> User:
        """
        Remove and return the user with `user_id`.

        Raises:
            NotFoundError: no such id (including one removed earlier).
        """
        with self._lock:
            for index, user in enumerate(self._users):
                if user.id == user_id:
                    del self._users[index]
                    self._email_index.pop(user.email_key, None)
                    return user
        raise NotFoundError(resource="user", resource_id=user_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)

    def _find(self, user_id: str) -> Optional[User]:
        for user in self._users:
            if user.id == user_id:
                return user
        return None
