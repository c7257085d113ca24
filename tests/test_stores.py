"""
tests/test_stores.py -- Unit tests for UserStore and LocationStore.

Each test gets a fresh in-memory Database (plain :memory: is fine here --
no thread pool is involved).
"""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from auth.credentials import apply_update, new_credential, verify_secret
from auth.models import PermissionLevel
from auth.store import UserStore
from catalog.models import Location
from catalog.store import LocationStore
from core.database import Database
from core.errors import DataAccessError
from query.entities import LOCATIONS, USERS
from query.options import QueryOptionsBuilder


def _location(name: str, city: str, price_min: float | None = None) -> Location:
    return Location(
        name=name,
        country="PL",
        city=city,
        street="Main 1",
        latitude=50.06,
        longitude=19.94,
        price_min=price_min,
        price_max=None if price_min is None else price_min + 1,
    )


class TestUserStore:
    def test_create_and_fetch_by_username_and_email(self, db: Database) -> None:
        store = UserStore(db)
        assert store.has_users() is False
        user_id = store.create_user(new_credential("someone", "someone@example.com", "password1"))
        assert store.has_users() is True

        by_name = store.get_by_login("someone")
        by_email = store.get_by_login("someone@example.com")
        assert by_name is not None and by_email is not None
        assert by_name.id == by_email.id == user_id
        assert by_name.permission_level == PermissionLevel.REGULAR_USER
        assert verify_secret("password1", by_name.salt, by_name.password_hash)

    def test_unknown_login(self, db: Database) -> None:
        assert UserStore(db).get_by_login("ghost") is None
        assert UserStore(db).get_by_id(999) is None

    def test_duplicate_username_raises_integrity_error(self, db: Database) -> None:
        store = UserStore(db)
        store.create_user(new_credential("someone", "a@example.com", "password1"))
        with pytest.raises(IntegrityError):
            store.create_user(new_credential("someone", "b@example.com", "password1"))

    def test_duplicate_email_raises_integrity_error(self, db: Database) -> None:
        store = UserStore(db)
        store.create_user(new_credential("someone", "a@example.com", "password1"))
        with pytest.raises(IntegrityError):
            store.create_user(new_credential("another", "a@example.com", "password1"))

    def test_update_persists_rotated_salt(self, db: Database) -> None:
        store = UserStore(db)
        user_id = store.create_user(new_credential("someone", "a@example.com", "password1"))
        current = store.get_by_id(user_id)
        assert store.update_credential(apply_update(current, password="password2")) is True

        stored = store.get_by_id(user_id)
        assert stored.salt != current.salt
        assert verify_secret("password2", stored.salt, stored.password_hash)

    def test_update_missing_id_returns_false(self, db: Database) -> None:
        store = UserStore(db)
        ghost = apply_update(new_credential("ghostly", "g@example.com", "password1"), username="ghostly2")
        assert store.update_credential(ghost) is False

    def test_list_users_with_filter_and_total(self, db: Database) -> None:
        store = UserStore(db)
        store.create_user(new_credential("admin01", "admin@example.com", "password1", PermissionLevel.ADMIN))
        for i in range(3):
            store.create_user(new_credential(f"user{i:04d}", f"u{i}@example.com", "password1"))

        options = QueryOptionsBuilder(USERS).build(2, 0, ["username"], "permissions = 'regularUser'")
        rows, total = store.list_users(options)
        assert rows == [{"username": "user0000"}, {"username": "user0001"}]
        assert total == 3


class TestLocationStore:
    def test_add_location_defaults(self, db: Database) -> None:
        store = LocationStore(db)
        toilet_id = store.add_location(_location("Rynek", "Krakow", 2.0))

        options = QueryOptionsBuilder(LOCATIONS).build(10, 0, ["*"])
        rows, total = store.list_locations(options)
        assert total == 1
        row = rows[0]
        assert row["id"] == toilet_id
        assert row["name"] == "Rynek"
        assert row["rating"] == 0
        assert row["vote_nr"] == 0
        assert row["validated"] == 0
        assert row["date_added"]
        assert list(row) == list(LOCATIONS.columns)

    def test_view_creation_is_idempotent(self, db: Database) -> None:
        LocationStore(db)
        LocationStore(db)

    def test_filtered_listing_with_pagination(self, db: Database) -> None:
        store = LocationStore(db)
        store.add_location(_location("A", "Krakow", 10.0))
        store.add_location(_location("B", "Krakow", 3.0))
        store.add_location(_location("C", "Warsaw", 8.0))
        store.add_location(_location("D", "Krakow", 6.0))

        builder = QueryOptionsBuilder(LOCATIONS)
        options = builder.build(1, 1, ["name"], "price_min > 5 AND city = 'Krakow'")
        rows, total = store.list_locations(options)
        assert total == 2
        assert rows == [{"name": "D"}]

    def test_or_filter(self, db: Database) -> None:
        store = LocationStore(db)
        store.add_location(_location("A", "Krakow"))
        store.add_location(_location("B", "Gdansk"))
        store.add_location(_location("C", "Warsaw"))

        options = QueryOptionsBuilder(LOCATIONS).build(10, 0, ["name"], "city = 'Gdansk' OR city = 'Warsaw'")
        rows, total = store.list_locations(options)
        assert {r["name"] for r in rows} == {"B", "C"}
        assert total == 2

    def test_injection_value_matches_nothing(self, db: Database) -> None:
        store = LocationStore(db)
        store.add_location(_location("A", "Krakow"))

        options = QueryOptionsBuilder(LOCATIONS).build(10, 0, ["id"], "name = 'x'' OR ''1''=''1'")
        rows, total = store.list_locations(options)
        assert rows == []
        assert total == 0

    def test_offset_past_end_returns_empty_page(self, db: Database) -> None:
        store = LocationStore(db)
        store.add_location(_location("A", "Krakow"))
        rows, total = store.list_locations(QueryOptionsBuilder(LOCATIONS).build(10, 50, ["id"]))
        assert rows == []
        assert total == 1


def test_ping(db: Database) -> None:
    assert db.ping() is True


class TestDatabaseErrors:
    """Driver failures surface as DataAccessError and never leak a connection."""

    def test_query_on_missing_table(self, tmp_path) -> None:
        database = Database(f"sqlite:///{tmp_path / 'errors.db'}")
        try:
            with pytest.raises(DataAccessError) as exc_info:
                database.query("SELECT id FROM missing_table LIMIT 1 OFFSET 0", [])
            assert "missing_table" in exc_info.value.detail
            assert "missing_table" not in exc_info.value.message
            assert database.engine.pool.checkedout() == 0
        finally:
            database.close()

    def test_failed_transaction_releases_connection(self, tmp_path) -> None:
        database = Database(f"sqlite:///{tmp_path / 'errors.db'}")
        try:
            with pytest.raises(DataAccessError):
                with database.begin() as conn:
                    conn.exec_driver_sql("INSERT INTO missing_table (id) VALUES (1)")
            assert database.engine.pool.checkedout() == 0
            assert database.ping() is True
        finally:
            database.close()
