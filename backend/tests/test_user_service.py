"""
Bones Backend — User Service Unit Tests
========================================

What:  Tests for UserService business logic (list, get, create, delete).
How:   Real UserStore, no HTTP.

What we test:
    ✅ Create then list contains exactly the new user
    ✅ Validation: missing, blank, too long, malformed email
    ✅ Duplicate emails (case-insensitive, trimmed), also under concurrency
    ✅ Delete succeeds once, then NotFound
    ✅ List is stable without intervening writes
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from bones.exceptions import DuplicateKeyError, NotFoundError, ValidationError
from bones.schemas.user import UserCreate
from bones.services.user_service import UserService
from bones.store import UserStore


class TestUserServiceCreate:
    """Tests for create_user validation and bookkeeping."""

    def setup_method(self):
        self.service = UserService(UserStore())

    def test_create_then_list_contains_user(self):
        user = self.service.create_user(UserCreate(name="Ann", email="ann@example.com"))

        users = self.service.list_users()
        assert users == [user]
        assert user.id
        assert user.name == "Ann"
        assert user.email == "ann@example.com"
        assert user.created_at.tzinfo is not None

    def test_create_trims_fields(self):
        user = self.service.create_user(UserCreate(name="  Ann  ", email=" ann@example.com\t"))
        assert user.name == "Ann"
        assert user.email == "ann@example.com"

    def test_ids_are_unique(self):
        first = self.service.create_user(UserCreate(name="Ann", email="ann@example.com"))
        second = self.service.create_user(UserCreate(name="Bob", email="bob@example.com"))
        assert first.id != second.id

    def test_insertion_order_preserved(self):
        for name in ("a", "b", "c"):
            self.service.create_user(UserCreate(name=name, email=f"{name}@example.com"))
        assert [u.name for u in self.service.list_users()] == ["a", "b", "c"]

    @pytest.mark.parametrize("field", ["name", "email"])
    def test_missing_field_rejected(self, field):
        data = {"name": "Ann", "email": "ann@example.com"}
        data[field] = None
        with pytest.raises(ValidationError) as exc_info:
            self.service.create_user(UserCreate(**data))
        assert exc_info.value.field == field
        assert self.service.list_users() == []

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError, match="blank"):
            self.service.create_user(UserCreate(name="   ", email="ann@example.com"))

    @pytest.mark.parametrize(
        "email",
        ["ann", "ann@", "@example.com", "ann@example", "ann @example.com", "ann@@example.com"],
    )
    def test_malformed_email_rejected(self, email):
        with pytest.raises(ValidationError) as exc_info:
            self.service.create_user(UserCreate(name="Ann", email=email))
        assert exc_info.value.field == "email"

    def test_name_too_long_rejected(self):
        service = UserService(UserStore(), name_max_length=5)
        with pytest.raises(ValidationError, match="at most 5"):
            service.create_user(UserCreate(name="Annabelle", email="ann@example.com"))

    def test_duplicate_email_case_insensitive_and_trimmed(self):
        self.service.create_user(UserCreate(name="Ann", email="ann@example.com"))

        with pytest.raises(DuplicateKeyError) as exc_info:
            self.service.create_user(UserCreate(name="Ann 2", email="ANN@example.com "))

        assert exc_info.value.field == "email"
        assert len(self.service.list_users()) == 1


class TestUserServiceConcurrency:
    """Check-then-act on the email index must be atomic."""

    def test_concurrent_duplicate_creates_only_one_succeeds(self):
        service = UserService(UserStore())
        barrier = threading.Barrier(8)

        def attempt(i):
            barrier.wait()
            try:
                service.create_user(UserCreate(name=f"Ann {i}", email="Ann@Example.com"))
                return "ok"
            except DuplicateKeyError:
                return "duplicate"

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(attempt, range(8)))

        assert outcomes.count("ok") == 1
        assert outcomes.count("duplicate") == 7
        assert len(service.list_users()) == 1

    def test_concurrent_distinct_creates_all_succeed(self):
        service = UserService(UserStore())

        def create(i):
            return service.create_user(UserCreate(name=f"user{i}", email=f"user{i}@example.com"))

        with ThreadPoolExecutor(max_workers=8) as pool:
            created = list(pool.map(create, range(50)))

        assert len(service.list_users()) == 50
        assert len({user.id for user in created}) == 50


class TestUserServiceGetDelete:
    """Tests for get_user and delete_user."""

    def setup_method(self):
        self.service = UserService(UserStore())

    def test_get_existing_user(self):
        user = self.service.create_user(UserCreate(name="Ann", email="ann@example.com"))
        assert self.service.get_user(user.id) == user

    def test_get_unknown_user(self):
        with pytest.raises(NotFoundError):
            self.service.get_user("missing")

    def test_delete_succeeds_once(self):
        user = self.service.create_user(UserCreate(name="Ann", email="ann@example.com"))

        self.service.delete_user(user.id)
        with pytest.raises(NotFoundError):
            self.service.delete_user(user.id)

    def test_delete_closes_gap(self):
        users = [
            self.service.create_user(UserCreate(name=n, email=f"{n}@example.com"))
            for n in ("a", "b", "c")
        ]
        self.service.delete_user(users[1].id)
        assert [u.name for u in self.service.list_users()] == ["a", "c"]

    def test_delete_frees_email(self):
        user = self.service.create_user(UserCreate(name="Ann", email="ann@example.com"))
        self.service.delete_user(user.id)

        again = self.service.create_user(UserCreate(name="Ann", email="ANN@example.com"))
        assert again.id != user.id

    def test_list_is_stable_without_writes(self):
        self.service.create_user(UserCreate(name="Ann", email="ann@example.com"))
        self.service.create_user(UserCreate(name="Bob", email="bob@example.com"))
        assert self.service.list_users() == self.service.list_users()

    def test_list_is_a_snapshot(self):
        snapshot = self.service.list_users()
        self.service.create_user(UserCreate(name="Ann", email="ann@example.com"))
        assert snapshot == []

    def test_ann_scenario(self):
        user = self.service.create_user(UserCreate(name="Ann", email="ann@example.com"))
        assert user.id and user.created_at

        with pytest.raises(DuplicateKeyError):
            self.service.create_user(UserCreate(name="Ann", email="ANN@example.com "))

        self.service.delete_user(user.id)
        with pytest.raises(NotFoundError):
            self.service.delete_user(user.id)

        assert self.service.list_users() == []
