"""
auth/store.py -- SQLAlchemy Core persistence layer for user credentials.

Pattern: Repository + Data Mapper (same as catalog/store.py).
UserStore is the repository; _row_to_credential is the mapper.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. Listing queries come from
  query.options.QueryOptions, whose column names are allow-listed and whose
  filter values are positional parameters.

  UNIQUE(salt) backs up the rule that salts are never shared between users.
  UNIQUE(username) and UNIQUE(email) raise IntegrityError, which the routes
  turn into a 409.

  The store never deletes users.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, or_, select

from auth.models import PermissionLevel, UserCredential
from core.database import Database
from query.entities import USERS
from query.options import QueryOptions

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(40), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),  # base64(SHA-256(password + salt))
    Column("salt", String(64), nullable=False, unique=True),
    Column("permissions", String(20), nullable=False, server_default=PermissionLevel.REGULAR_USER.value),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for UserCredential records.

    Usage:
        store = UserStore(Database("sqlite:///catalog.db"))
        user_id = store.create_user(new_credential("someone", "a@b.pl", "secret1"))
        credential = store.get_by_login("someone")
    """

    def __init__(self, db: Database) -> None:
        self.db = db
        db.create_tables(_metadata)

    def has_users(self) -> bool:
        """Return True if at least one user record exists."""
        with self.db.open() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def create_user(self, credential: UserCredential) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the username, email or salt
        already exists.
        """
        with self.db.begin() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=credential.username,
                    email=credential.email,
                    password_hash=credential.password_hash,
                    salt=credential.salt,
                    permissions=credential.permission_level.value,
                )
            )
            return result.inserted_primary_key[0]

    def get_by_login(self, login: str) -> UserCredential | None:
        """Look up a user whose username OR email equals login. Returns None if not found."""
        with self.db.open() as conn:
            row = conn.execute(
                _users.select().where(or_(_users.c.username == login, _users.c.email == login))
            ).fetchone()
        return _row_to_credential(row) if row is not None else None

    def get_by_id(self, user_id: int) -> UserCredential | None:
        with self.db.open() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_credential(row) if row is not None else None

    def update_credential(self, credential: UserCredential) -> bool:
        """Persist username, email, password_hash and salt for credential.id.

        Returns True if a row was updated, False if the id was not found.
        Raises IntegrityError if the new username or email is taken.
        """
        with self.db.begin() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == credential.id)
                .values(
                    username=credential.username,
                    email=credential.email,
                    password_hash=credential.password_hash,
                    salt=credential.salt,
                )
            )
        return result.rowcount > 0

    def list_users(self, options: QueryOptions) -> tuple[list[dict], int]:
        """Return (rows, total) for a validated listing over the Users allow-list."""
        text, params = options.to_select_query(USERS)
        rows = self.db.query(text, params)
        count_text, count_params = options.to_count_query(USERS)
        total = self.db.scalar(count_text, count_params) or 0
        return rows, total


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_credential(row) -> UserCredential:
    return UserCredential(
        id=row.id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        salt=row.salt,
        permission_level=PermissionLevel(row.permissions),
    )
