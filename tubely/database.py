"""SQLite-backed storage for users, refresh tokens and videos."""

from __future__ import annotations

import sqlite3
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

_USERS_TABLE = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    password TEXT NOT NULL,
    email TEXT UNIQUE NOT NULL
)
"""

_REFRESH_TOKENS_TABLE = """
CREATE TABLE IF NOT EXISTS refresh_tokens (
    token TEXT PRIMARY KEY,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    revoked_at TIMESTAMP,
    user_id TEXT NOT NULL,
    expires_at TIMESTAMP NOT NULL,
    FOREIGN KEY(user_id) REFERENCES users(id)
)
"""

_VIDEOS_TABLE = """
CREATE TABLE IF NOT EXISTS videos (
    id TEXT PRIMARY KEY,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    title TEXT NOT NULL,
    description TEXT,
    thumbnail_url TEXT,
    video_url TEXT,
    user_id INTEGER,
    FOREIGN KEY(user_id) REFERENCES users(id)
)
"""

_VIDEO_COLUMNS = (
    "id, created_at, updated_at, title, description, thumbnail_url, video_url, user_id"
)


def _parse_ts(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_db_ts(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(sep=" ")


def _format_ts(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class CreateUserParams:
    """Fields needed to create a user."""

    email: str
    password: str


@dataclass
class User:
    """A stored user account."""

    id: uuid.UUID
    email: str
    password: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation of the user."""
        return {
            "id": str(self.id),
            "created_at": _format_ts(self.created_at),
            "updated_at": _format_ts(self.updated_at),
            "email": self.email,
            "password": self.password,
        }


@dataclass
class CreateVideoParams:
    """Fields needed to create a video record."""

    title: str
    description: str
    user_id: uuid.UUID


@dataclass
class Video:
    """A stored video record."""

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    title: str
    description: str
    user_id: uuid.UUID
    thumbnail_url: str | None = None
    video_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation of the video."""
        return {
            "id": str(self.id),
            "created_at": _format_ts(self.created_at),
            "updated_at": _format_ts(self.updated_at),
            "thumbnail_url": self.thumbnail_url,
            "video_url": self.video_url,
            "title": self.title,
            "description": self.description,
            "user_id": str(self.user_id),
        }


@dataclass
class CreateRefreshTokenParams:
    """Fields needed to store a refresh token."""

    token: str
    user_id: uuid.UUID
    expires_at: datetime


@dataclass
class RefreshToken:
    """A stored refresh token."""

    token: str
    user_id: uuid.UUID
    expires_at: datetime
    created_at: datetime
    updated_at: datetime
    revoked_at: datetime | None = None


class Client:
    """Access to the application's SQLite database."""

    def __init__(self, path_to_db):
        self._conn = sqlite3.connect(
            str(path_to_db), check_same_thread=False, isolation_level=None
        )
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._migrate()

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying connection."""
        self._conn.close()

    def _execute(self, query: str, params: Iterable[Any] = ()) -> None:
        with self._lock:
            self._conn.execute(query, tuple(params))

    def _fetch_one(self, query: str, params: Iterable[Any] = ()) -> sqlite3.Row | None:
        with self._lock:
            return self._conn.execute(query, tuple(params)).fetchone()

    def _fetch_all(self, query: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(query, tuple(params)).fetchall()

    def _migrate(self) -> None:
        for statement in (_USERS_TABLE, _REFRESH_TOKENS_TABLE, _VIDEOS_TABLE):
            self._execute(statement)

    def reset(self) -> None:
        """Delete every row from every table."""
        for table in ("refresh_tokens", "users", "videos"):
            try:
                self._execute(f"DELETE FROM {table}")
            except sqlite3.Error as exc:
                raise sqlite3.DatabaseError(
                    f"failed to reset table {table}: {exc}"
                ) from exc

    # Users

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=uuid.UUID(row["id"]),
            email=row["email"],
            password=row["password"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    def get_users(self) -> list[User]:
        """Return every user with only id and email filled in."""
        rows = self._fetch_all("SELECT id, email FROM users")
        return [User(id=uuid.UUID(row["id"]), email=row["email"]) for row in rows]

    def get_user_by_email(self, email: str) -> User | None:
        """Return the user with the given email, or None."""
        row = self._fetch_one(
            "SELECT id, created_at, updated_at, email, password FROM users WHERE email = ?",
            (email,),
        )
        return self._row_to_user(row) if row else None

    def get_user_by_refresh_token(self, token: str) -> User | None:
        """Return the user who owns the given refresh token, or None."""
        row = self._fetch_one(
            """
            SELECT u.id, u.email, u.created_at, u.updated_at, u.password
            FROM users u
            JOIN refresh_tokens rt ON u.id = rt.user_id
            WHERE rt.token = ?
            """,
            (token,),
        )
        return self._row_to_user(row) if row else None

    def create_user(self, params: CreateUserParams) -> User | None:
        """Insert a new user and return it as stored."""
        user_id = uuid.uuid4()
        self._execute(
            """
            INSERT INTO users (id, created_at, updated_at, email, password)
            VALUES (?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, ?, ?)
            """,
            (str(user_id), params.email, params.password),
        )
        return self.get_user(user_id)

    def get_user(self, user_id: uuid.UUID) -> User | None:
        """Return the user with the given id, or None."""
        row = self._fetch_one(
            "SELECT id, created_at, updated_at, email, password FROM users WHERE id = ?",
            (str(user_id),),
        )
        return self._row_to_user(row) if row else None

    def delete_user(self, user_id: uuid.UUID) -> None:
        """Delete the user with the given id."""
        self._execute("DELETE FROM users WHERE id = ?", (str(user_id),))

    # Refresh tokens

    def create_refresh_token(self, params: CreateRefreshTokenParams) -> RefreshToken | None:
        """Store a refresh token and return it as stored."""
        self._execute(
            """
            INSERT INTO refresh_tokens (token, created_at, updated_at, user_id, expires_at)
            VALUES (?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, ?, ?)
            """,
            (params.token, str(params.user_id), _to_db_ts(params.expires_at)),
        )
        return self.get_refresh_token(params.token)

    def revoke_refresh_token(self, token: str) -> None:
        """Mark a refresh token as revoked now."""
        self._execute(
            "UPDATE refresh_tokens SET revoked_at = CURRENT_TIMESTAMP WHERE token = ?",
            (token,),
        )

    def get_refresh_token(self, token: str) -> RefreshToken | None:
        """Return the stored refresh token, or None."""
        row = self._fetch_one(
            """
            SELECT token, created_at, updated_at, user_id, expires_at, revoked_at
            FROM refresh_tokens
            WHERE token = ?
            """,
            (token,),
        )
        if row is None:
            return None
        return RefreshToken(
            token=row["token"],
            user_id=uuid.UUID(row["user_id"]),
            expires_at=_parse_ts(row["expires_at"]),
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
            revoked_at=_parse_ts(row["revoked_at"]),
        )

    def delete_refresh_token(self, token: str) -> None:
        """Delete a stored refresh token."""
        self._execute("DELETE FROM refresh_tokens WHERE token = ?", (token,))

    # Videos

    @staticmethod
    def _row_to_video(row: sqlite3.Row) -> Video:
        return Video(
            id=uuid.UUID(row["id"]),
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
            title=row["title"],
            description=row["description"] or "",
            user_id=uuid.UUID(str(row["user_id"])),
            thumbnail_url=row["thumbnail_url"],
            video_url=row["video_url"],
        )

    def get_videos(self, user_id: uuid.UUID) -> list[Video]:
        """Return a user's videos, newest first."""
        rows = self._fetch_all(
            f"SELECT {_VIDEO_COLUMNS} FROM videos WHERE user_id = ? ORDER BY created_at DESC",
            (str(user_id),),
        )
        return [self._row_to_video(row) for row in rows]

    def create_video(self, params: CreateVideoParams) -> Video | None:
        """Insert a new video record and return it as stored."""
        video_id = uuid.uuid4()
        self._execute(
            """
            INSERT INTO videos (id, created_at, updated_at, title, description, user_id)
            VALUES (?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, ?, ?, ?)
            """,
            (str(video_id), params.title, params.description, str(params.user_id)),
        )
        return self.get_video(video_id)

    def get_video(self, video_id: uuid.UUID) -> Video | None:
        """Return the video with the given id, or None."""
        row = self._fetch_one(
            f"SELECT {_VIDEO_COLUMNS} FROM videos WHERE id = ?", (str(video_id),)
        )
        return self._row_to_video(row) if row else None

    def update_video(self, video: Video) -> None:
        """Write a video's editable fields back to the database."""
        self._execute(
            """
            UPDATE videos
            SET title = ?, description = ?, thumbnail_url = ?, video_url = ?, user_id = ?
            WHERE id = ?
            """,
            (
                video.title,
                video.description,
                video.thumbnail_url,
                video.video_url,
                str(video.user_id),
                str(video.id),
            ),
        )

    def delete_video(self, video_id: uuid.UUID) -> None:
        """Delete the video with the given id."""
        self._execute("DELETE FROM videos WHERE id = ?", (str(video_id),))