"""SQLite storage for users and sent newsletters."""

import json
import logging
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from newsly.core.errors import DuplicateUserError, UserNotFoundError
from newsly.models.content import (
    DEFAULT_USER_SPEC,
    NewsletterRecord,
    User,
    parse_preference_spec,
)

logger = logging.getLogger(__name__)

SpecInput = Union[str, Dict[str, Any], None]


def _spec_to_json(spec: SpecInput) -> str:
    """Validate a spec and return the JSON string to store.

    Raises:
        SpecMalformedError: If a string spec is not a JSON object.
    """
    if spec is None:
        return json.dumps(DEFAULT_USER_SPEC)
    if isinstance(spec, str):
        parse_preference_spec(spec)
        return spec
    parse_preference_spec(spec)
    return json.dumps(spec)


class NewsletterStore:
    """Persists users and their newsletter history in SQLite."""

    def __init__(self, db_path: Union[str, Path] = "newsly.db"):
        """Initialize the store and create tables if needed.

        Args:
            db_path: SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(exist_ok=True, parents=True)
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_database(self):
        """Initialize SQLite tables."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT UNIQUE NOT NULL,
                    name TEXT,
                    spec TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS newsletters (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    subject TEXT NOT NULL,
                    content TEXT NOT NULL,
                    sent_at TIMESTAMP NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_newsletters_user ON newsletters(user_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_newsletters_sent_at ON newsletters(sent_at)"
            )
            conn.commit()
        conn.close()

    @staticmethod
    def _user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            name=row["name"],
            spec=row["spec"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def list_users(self) -> List[User]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM users ORDER BY created_at DESC"
            ).fetchall()
        finally:
            conn.close()
        return [self._user(row) for row in rows]

    def get_user(self, user_id: str) -> User:
        """Get a user by id.

        Raises:
            UserNotFoundError: If no such user exists.
        """
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            raise UserNotFoundError(f"User not found: {user_id}")
        return self._user(row)

    def create_user(
        self, email: str, name: Optional[str] = None, spec: SpecInput = None
    ) -> User:
        """Create a user, defaulting to the standard preference spec.

        Raises:
            SpecMalformedError: If ``spec`` is not a JSON object.
            DuplicateUserError: If the email is already registered.
        """
        user = User(
            id=uuid.uuid4().hex,
            email=email.strip(),
            name=name,
            spec=_spec_to_json(spec),
        )
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO users (id, email, name, spec, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (user.id, user.email, user.name, user.spec, user.created_at.isoformat()),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateUserError(f"User already exists: {user.email}") from e
        finally:
            conn.close()
        logger.info(f"Created user {user.email}")
        return user

    def upsert_user(
        self, email: str, name: Optional[str] = None, spec: SpecInput = None
    ) -> User:
        """Return the existing user for ``email`` or create it."""
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?", (email.strip(),)
            ).fetchone()
        finally:
            conn.close()
        if row is not None:
            return self._user(row)
        return self.create_user(email, name=name, spec=spec)

    def update_user(
        self, user_id: str, spec: SpecInput = None, name: Optional[str] = None
    ) -> User:
        """Update a user's spec and/or name; omitted fields are kept.

        Raises:
            SpecMalformedError: If ``spec`` is not a JSON object.
            UserNotFoundError: If no such user exists.
        """
        updates: Dict[str, Any] = {}
        if spec is not None:
            updates["spec"] = _spec_to_json(spec)
        if name is not None:
            updates["name"] = name

        if updates:
            assignments = ", ".join(f"{column} = ?" for column in updates)
            conn = self._connect()
            try:
                with conn:
                    cursor = conn.execute(
                        f"UPDATE users SET {assignments} WHERE id = ?",
                        (*updates.values(), user_id),
                    )
            finally:
                conn.close()
            if cursor.rowcount == 0:
                raise UserNotFoundError(f"User not found: {user_id}")

        return self.get_user(user_id)

    def delete_user(self, user_id: str) -> None:
        """Delete a user and their newsletter history.

        Raises:
            UserNotFoundError: If no such user exists.
        """
        conn = self._connect()
        try:
            with conn:
                cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
        finally:
            conn.close()
        if cursor.rowcount == 0:
            raise UserNotFoundError(f"User not found: {user_id}")
        logger.info(f"Deleted user {user_id}")

    def record_newsletter(
        self,
        user_id: str,
        subject: str,
        content: str,
        sent_at: Optional[datetime] = None,
    ) -> NewsletterRecord:
        """Store a newsletter that was sent to a user."""
        record = NewsletterRecord(
            id=uuid.uuid4().hex,
            user_id=user_id,
            subject=subject,
            content=content,
            sent_at=sent_at or datetime.now(),
        )
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO newsletters (id, user_id, subject, content, sent_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (
                        record.id,
                        record.user_id,
                        record.subject,
                        record.content,
                        record.sent_at.isoformat(),
                    ),
                )
        finally:
            conn.close()
        return record

    def newsletter_history(
        self, user_id: Optional[str] = None, limit: Optional[int] = None
    ) -> List[NewsletterRecord]:
        """List sent newsletters, newest first.

        Args:
            user_id: Restrict to one user (default limit 50)
            limit: Maximum rows; all users default to 100
        """
        if limit is None:
            limit = 50 if user_id else 100

        query = (
            "SELECT n.*, u.email AS user_email, u.name AS user_name "
            "FROM newsletters n JOIN users u ON u.id = n.user_id"
        )
        params: tuple = ()
        if user_id:
            query += " WHERE n.user_id = ?"
            params = (user_id,)
        query += " ORDER BY n.sent_at DESC, n.rowid DESC LIMIT ?"

        conn = self._connect()
        try:
            rows = conn.execute(query, (*params, limit)).fetchall()
        finally:
            conn.close()

        return [
            NewsletterRecord(
                id=row["id"],
                user_id=row["user_id"],
                subject=row["subject"],
                content=row["content"],
                sent_at=datetime.fromisoformat(row["sent_at"]),
                user_email=row["user_email"],
                user_name=row["user_name"],
            )
            for row in rows
        ]


SEED_USERS = (
    {
        "email": "john.doe@example.com",
        "name": "John Doe",
        "preferences": {"topics": ["technology", "startups", "AI"], "sendTime": "08:00"},
        "overrides": {},
    },
    {
        "email": "jane.smith@example.com",
        "name": "Jane Smith",
        "preferences": {
            "topics": ["programming", "web development", "open source"],
            "excludeTopics": ["crypto"],
            "sendTime": "09:30",
        },
        "overrides": {"tone": "casual"},
    },
    {
        "email": "alex.johnson@example.com",
        "name": "Alex Johnson",
        "preferences": {
            "topics": ["security", "privacy", "blockchain"],
            "sendTime": "07:00",
        },
        "overrides": {"length": "short"},
    },
)


def seed_users(store: NewsletterStore) -> List[User]:
    """Create the sample users if they do not exist yet."""
    users = []
    for sample in SEED_USERS:
        spec = {
            **DEFAULT_USER_SPEC,
            "preferences": {**DEFAULT_USER_SPEC["preferences"], **sample["preferences"]},
            **sample["overrides"],
        }
        user = store.upsert_user(sample["email"], name=sample["name"], spec=spec)
        logger.info(f"Created/found user: {user.email}")
        users.append(user)
    return users
