"""
User Store Module

This module handles persistence of user accounts for the SecureFace
authentication service.

Users are stored in a single SQLite table. Each row holds the account
identity (email, name), the email verification state, and, once face
enrollment completes, the face descriptor and the RSA public key.

The UserStore class provides the operations the authentication flow needs:
- create_user / get_user / get_user_by_email / update_user
- create_verification_token / verify_user_email
- save_face_descriptor / save_public_key / save_enrollment

Every state transition is a single SQL statement committed on its own, so a
concurrent reader never sees half of an update. Emails are stored
lower-cased and all lookups normalize case.

Usage:
    from core.user_store import UserStore

    store = UserStore(db_path="storage/secureface.sqlite")
    user = store.create_user("alice@example.com", "Alice")
    token, expiry = store.create_verification_token(user.id)
    verified = store.verify_user_email(token)
"""

import json
import sqlite3
import threading
import time
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import Callable, Dict, Any, List, Optional, Sequence, Tuple

from core.challenge import new_verification_token
from core.errors import Conflict

# Setup logging
logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TTL_SECONDS = 24 * 60 * 60

# Columns update_user may touch, mapped to their SQL names
_UPDATABLE_COLUMNS = {
    "name": "name",
    "public_key": "public_key",
    "face_descriptor": "face_descriptor",
    "email_verified": "email_verified",
    "verification_token": "verification_token",
    "verification_token_expiry": "verification_token_expiry",
}


def normalize_email(email: str) -> str:
    """Normalize an email address for storage and lookup."""
    return email.strip().lower()


@dataclass
class User:
    """
    A registered user.

    Attributes:
        id: Unique integer identifier.
        email: Lower-cased email address (unique).
        name: Display name.
        public_key: PEM public key, set at face enrollment.
        face_descriptor: Enrolled face descriptor, set together with public_key.
        email_verified: Whether the email address has been verified.
        verification_token: Active single-use verification token, if any.
        verification_token_expiry: Token expiry in epoch seconds.
        created_at: Creation timestamp (SQLite CURRENT_TIMESTAMP).
    """

    id: int
    email: str
    name: str
    public_key: Optional[str] = None
    face_descriptor: Optional[List[float]] = None
    email_verified: bool = False
    verification_token: Optional[str] = None
    verification_token_expiry: Optional[int] = None
    created_at: Optional[str] = None

    @property
    def has_face(self) -> bool:
        """Return True once face enrollment has completed."""
        return self.face_descriptor is not None

    def to_public_dict(self) -> Dict[str, Any]:
        """Fields safe to return to the user themselves."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "email_verified": self.email_verified,
        }


class UserStore:
    """
    SQLite persistence for users.

    The connection is shared across request threads and guarded by a lock;
    each public method runs its statements and commits while holding it.

    Attributes:
        db_path: Path to the SQLite database file (or ":memory:").
        token_ttl_seconds: Lifetime of newly created verification tokens.
    """

    def __init__(
        self,
        db_path: str,
        token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the UserStore.

        Creates the database file and schema if they don't exist.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
            token_ttl_seconds: Verification token lifetime in seconds.
            clock: Returns the current epoch time (overridable in tests).
        """
        self.db_path = db_path
        self.token_ttl_seconds = token_ttl_seconds
        self._clock = clock
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._init_database()

        logger.info(f"UserStore initialized: db={self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get or create the SQLite connection.

        Returns:
            SQLite connection with Row factory for dict-like access.
        """
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_database(self) -> None:
        """Create the users table if it doesn't exist."""
        with self._lock:
            conn = self._get_connection()
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    public_key TEXT,
                    face_descriptor TEXT,
                    email_verified BOOLEAN NOT NULL DEFAULT 0,
                    verification_token TEXT,
                    verification_token_expiry INTEGER,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_users_verification_token
                ON users (verification_token)
            """)
            conn.commit()
        logger.debug("Database schema initialized")

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        descriptor = row["face_descriptor"]
        return User(
            id=row["id"],
            email=row["email"],
            name=row["name"],
            public_key=row["public_key"],
            face_descriptor=json.loads(descriptor) if descriptor is not None else None,
            email_verified=bool(row["email_verified"]),
            verification_token=row["verification_token"],
            verification_token_expiry=row["verification_token_expiry"],
            created_at=row["created_at"],
        )

    def _fetch_one(self, query: str, params: Tuple) -> Optional[User]:
        row = self._get_connection().execute(query, params).fetchone()
        return self._row_to_user(row) if row is not None else None

    def get_user(self, user_id: int) -> Optional[User]:
        """
        Get a user by ID.

        Returns:
            User, or None if not found.
        """
        with self._lock:
            return self._fetch_one("SELECT * FROM users WHERE id = ?", (user_id,))

    def get_user_by_email(self, email: str) -> Optional[User]:
        """
        Get a user by email address (case-insensitive).

        Returns:
            User, or None if not found.
        """
        with self._lock:
            return self._fetch_one(
                "SELECT * FROM users WHERE email = ?", (normalize_email(email),)
            )

    def create_user(self, email: str, name: str, email_verified: bool = False) -> User:
        """
        Create a new user.

        Args:
            email: Email address (normalized before storage).
            name: Display name.
            email_verified: Initial verification state, written by the
                same INSERT.

        Returns:
            The created User.

        Raises:
            Conflict: If a user with this email already exists.
        """
        email = normalize_email(email)

        with self._lock:
            conn = self._get_connection()
            try:
                cursor = conn.execute(
                    "INSERT INTO users (email, name, email_verified) VALUES (?, ?, ?)",
                    (email, name, bool(email_verified)),
                )
                conn.commit()
            except sqlite3.IntegrityError:
                conn.rollback()
                raise Conflict()

            user = self._fetch_one("SELECT * FROM users WHERE id = ?", (cursor.lastrowid,))

        logger.info(f"Created user id={user.id}")
        return user

    def update_user(self, user_id: int, **fields: Any) -> Optional[User]:
        """
        Merge `fields` into a user record in one statement.

        Args:
            user_id: The user's identifier.
            **fields: Any of name, public_key, face_descriptor, email_verified,
                verification_token, verification_token_expiry.

        Returns:
            The updated User, or None if the user doesn't exist.

        Raises:
            ValueError: If an unknown field is given.
        """
        unknown = set(fields) - set(_UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)}")

        if not fields:
            return self.get_user(user_id)

        assignments = []
        params: List[Any] = []
        for key, value in fields.items():
            if key == "face_descriptor" and value is not None:
                value = json.dumps([float(v) for v in value])
            elif key == "email_verified":
                value = bool(value)
            assignments.append(f"{_UPDATABLE_COLUMNS[key]} = ?")
            params.append(value)
        params.append(user_id)

        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute(
                f"UPDATE users SET {', '.join(assignments)} WHERE id = ?", params
            )
            conn.commit()

            if cursor.rowcount == 0:
                return None

            return self._fetch_one("SELECT * FROM users WHERE id = ?", (user_id,))

    def create_verification_token(
        self, user_id: int, min_interval_seconds: int = 0
    ) -> Optional[Tuple[str, int]]:
        """
        Issue a new verification token, replacing any active one.

        Args:
            user_id: The user's identifier.
            min_interval_seconds: Keep the active token if it was issued
                less than this many seconds ago.

        Returns:
            (token, expiry_epoch_seconds), or None if the user doesn't exist
            or the active token is too recent to replace.
        """
        token = new_verification_token()
        expiry = int(self._clock()) + self.token_ttl_seconds

        # Tokens issued at least min_interval_seconds ago expire no later than this
        replaceable_expiry = expiry - min_interval_seconds

        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute(
                "UPDATE users SET verification_token = ?, verification_token_expiry = ? "
                "WHERE id = ? AND (verification_token_expiry IS NULL "
                "OR verification_token_expiry <= ?)",
                (token, expiry, user_id, replaceable_expiry),
            )
            conn.commit()

        if cursor.rowcount == 0:
            return None

        logger.debug(f"Issued verification token for user id={user_id}")
        return token, expiry

    def verify_user_email(self, token: str) -> Optional[User]:
        """
        Consume a verification token.

        The token is valid while the current time is strictly less than its
        expiry. It is cleared whether it was accepted or found expired, so
        it can never be used twice.

        Returns:
            The verified User, or None if the token is unknown or expired.
        """
        now = int(self._clock())

        with self._lock:
            conn = self._get_connection()
            user = self._fetch_one(
                "SELECT * FROM users WHERE verification_token = ?", (token,)
            )
            if user is None:
                return None

            expiry = user.verification_token_expiry
            if expiry is None or not now < expiry:
                conn.execute(
                    "UPDATE users SET verification_token = NULL, "
                    "verification_token_expiry = NULL WHERE id = ?",
                    (user.id,),
                )
                conn.commit()
                logger.info(f"Verification token expired for user id={user.id}")
                return None

            conn.execute(
                "UPDATE users SET email_verified = 1, verification_token = NULL, "
                "verification_token_expiry = NULL WHERE id = ?",
                (user.id,),
            )
            conn.commit()

            return self._fetch_one("SELECT * FROM users WHERE id = ?", (user.id,))

    def save_face_descriptor(self, user_id: int, descriptor: Sequence[float]) -> Optional[User]:
        """Store a face descriptor. Returns None if the user doesn't exist."""
        return self.update_user(user_id, face_descriptor=list(descriptor))

    def save_public_key(self, user_id: int, public_key: str) -> Optional[User]:
        """Store a PEM public key. Returns None if the user doesn't exist."""
        return self.update_user(user_id, public_key=public_key)

    def save_enrollment(
        self, user_id: int, descriptor: Sequence[float], public_key: str
    ) -> Optional[User]:
        """
        Store the face descriptor and public key together.

        Both columns are written by one UPDATE so they are never observed
        half-set.

        Returns:
            The updated User, or None if the user doesn't exist.
        """
        return self.update_user(
            user_id, face_descriptor=list(descriptor), public_key=public_key
        )

    def count_users(self) -> int:
        """Return the number of registered users."""
        with self._lock:
            row = self._get_connection().execute(
                "SELECT COUNT(*) AS count FROM users"
            ).fetchone()
        return row["count"] or 0

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug("Database connection closed")


# Singleton instance for the store
_store_instance: Optional[UserStore] = None


def get_user_store(db_path: Optional[str] = None) -> UserStore:
    """
    Get or create the singleton UserStore instance.

    Args:
        db_path: Path to SQLite database. If None, uses value from config.

    Returns:
        The shared UserStore instance.
    """
    global _store_instance

    if _store_instance is None:
        from core.config import get_storage_config, get_verification_config, get_project_root

        if db_path is None:
            db_path = str(get_project_root() / get_storage_config()["db_path"])

        ttl = get_verification_config().get("token_ttl_seconds", DEFAULT_TOKEN_TTL_SECONDS)
        _store_instance = UserStore(db_path, token_ttl_seconds=ttl)

    return _store_instance
