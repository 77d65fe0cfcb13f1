import contextlib
import json
import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone

from calcforge.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    RepositoryError,
)
from calcforge.models import AuthorProfile, Calculator, CalculatorSpec

logger = logging.getLogger(__name__)

EDITABLE_COLUMNS = ("title", "description", "prompt", "spec", "is_public",
                    "is_template", "category", "tags")


def _now():
    return datetime.now(timezone.utc).isoformat()


def _require_user(user_id):
    if not user_id:
        raise AuthenticationError("User not authenticated")


class CalculatorRepository:
    def __init__(self, db_path="calculators.db"):
        self.db_path = db_path
        self.lock = threading.RLock()

    def init_db(self):

        with self.get_connection() as conn:
            conn.executescript("""
                PRAGMA JOURNAL_MODE = WAL;

                CREATE TABLE IF NOT EXISTS profiles (
                    id TEXT PRIMARY KEY,
                    username TEXT,
                    full_name TEXT,
                    avatar_url TEXT
                );

                CREATE TABLE IF NOT EXISTS calculators (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES profiles(id),
                    title TEXT NOT NULL,
                    description TEXT,
                    prompt TEXT NOT NULL DEFAULT '',
                    spec TEXT NOT NULL,
                    is_public INTEGER NOT NULL DEFAULT 0,
                    is_template INTEGER NOT NULL DEFAULT 0,
                    category TEXT,
                    tags TEXT NOT NULL DEFAULT '[]',
                    views_count INTEGER NOT NULL DEFAULT 0,
                    likes_count INTEGER NOT NULL DEFAULT 0,
                    forks_count INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS calculator_likes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    calculator_id TEXT NOT NULL REFERENCES calculators(id) ON DELETE CASCADE,
                    created_at TEXT NOT NULL,
                    UNIQUE (user_id, calculator_id)
                );

                CREATE TABLE IF NOT EXISTS calculator_forks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    original_calculator_id TEXT NOT NULL,
                    forked_calculator_id TEXT NOT NULL REFERENCES calculators(id) ON DELETE CASCADE,
                    created_at TEXT NOT NULL
                );
            """)
        return self

    @contextlib.contextmanager
    def get_connection(self):

        with self.lock:
            conn = sqlite3.connect(self.db_path, timeout=30)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA busy_timeout = 30000")
            conn.execute("PRAGMA foreign_keys = ON")
            try:
                yield conn
            finally:
                conn.close()

    @contextlib.contextmanager
    def transaction(self):

        with self.get_connection() as conn:
            try:
                conn.execute("BEGIN")
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    # -------- profiles --------

    def ensure_profile(self, conn, profile):
        conn.execute(
            "INSERT OR IGNORE INTO profiles (id, username, full_name, avatar_url) VALUES (?, ?, ?, ?)",
            (profile.id, profile.username, profile.full_name or "", profile.avatar_url or ""),
        )

    # -------- calculators --------

    def create_calculator(self, profile, data):
        """Insert a calculator owned by ``profile``; ``data`` holds the editable columns."""
        _require_user(profile and profile.id)
        spec = data.get("spec")
        if not isinstance(spec, CalculatorSpec):
            raise RepositoryError("A calculator needs a specification")

        calculator_id = str(uuid.uuid4())
        now = _now()
        try:
            with self.transaction() as conn:
                self.ensure_profile(conn, profile)
                conn.execute(
                    """INSERT INTO calculators (id, user_id, title, description, prompt, spec,
                       is_public, is_template, category, tags, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        calculator_id,
                        profile.id,
                        data.get("title") or spec.title,
                        data.get("description"),
                        data.get("prompt") or "",
                        json.dumps(spec.to_dict()),
                        int(bool(data.get("is_public"))),
                        int(bool(data.get("is_template"))),
                        data.get("category"),
                        json.dumps(list(data.get("tags") or [])),
                        now,
                        now,
                    ),
                )
        except sqlite3.Error as e:
            raise RepositoryError(f"Failed to save calculator: {e}")

        logger.info("Created calculator %s for %s", calculator_id, profile.id)
        return self._load(calculator_id, profile.id)

    def get_calculator(self, calculator_id, viewer_id=None, count_view=True):
        """
        Fetch a calculator, counting the view unless ``count_view`` is False.

        Private calculators are only visible to their owner; anyone else gets
        NotFoundError, and the view is not counted.
        """
        self._require_visible(calculator_id, viewer_id)
        if count_view:
            with self.get_connection() as conn:
                conn.execute(
                    "UPDATE calculators SET views_count = views_count + 1 WHERE id = ?",
                    (calculator_id,),
                )
                conn.commit()
        return self._load(calculator_id, viewer_id)

    def update_calculator(self, user_id, calculator_id, changes):
        _require_user(user_id)
        self._check_owner(calculator_id, user_id, "update")

        columns = []
        params = []
        for column in EDITABLE_COLUMNS:
            if column not in changes:
                continue
            value = changes[column]
            if column == "spec":
                value = json.dumps(value.to_dict())
            elif column == "tags":
                value = json.dumps(list(value or []))
            elif column in ("is_public", "is_template"):
                value = int(bool(value))
            columns.append(f"{column} = ?")
            params.append(value)
        columns.append("updated_at = ?")
        params.extend([_now(), calculator_id])

        with self.get_connection() as conn:
            conn.execute(f"UPDATE calculators SET {', '.join(columns)} WHERE id = ?", params)
            conn.commit()
        return self._load(calculator_id, user_id)

    def delete_calculator(self, user_id, calculator_id):
        _require_user(user_id)
        self._check_owner(calculator_id, user_id, "delete")
        with self.transaction() as conn:
            conn.execute("DELETE FROM calculators WHERE id = ? AND user_id = ?", (calculator_id, user_id))
        logger.info("Deleted calculator %s", calculator_id)

    # -------- likes and forks --------

    def like_calculator(self, user_id, calculator_id):
        _require_user(user_id)
        self._require_visible(calculator_id, user_id)
        try:
            with self.transaction() as conn:
                conn.execute(
                    "INSERT INTO calculator_likes (user_id, calculator_id, created_at) VALUES (?, ?, ?)",
                    (user_id, calculator_id, _now()),
                )
                conn.execute(
                    "UPDATE calculators SET likes_count = likes_count + 1 WHERE id = ?",
                    (calculator_id,),
                )
        except sqlite3.IntegrityError:
            raise ConflictError("Calculator already liked")

    def unlike_calculator(self, user_id, calculator_id):
        _require_user(user_id)
        with self.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM calculator_likes WHERE user_id = ? AND calculator_id = ?",
                (user_id, calculator_id),
            )
            if cursor.rowcount:
                conn.execute(
                    "UPDATE calculators SET likes_count = MAX(likes_count - 1, 0) WHERE id = ?",
                    (calculator_id,),
                )

    def fork_calculator(self, profile, calculator_id):
        """Copy another calculator into ``profile``'s collection as a private fork."""
        _require_user(profile and profile.id)
        original = self.get_calculator(calculator_id, profile.id, count_view=False)

        forked = self.create_calculator(profile, {
            "title": f"{original.title} (Fork)",
            "description": original.description,
            "prompt": original.prompt,
            "spec": original.spec,
            "is_public": False,
            "category": original.category,
            "tags": original.tags,
        })

        try:
            with self.transaction() as conn:
                conn.execute(
                    """INSERT INTO calculator_forks
                       (user_id, original_calculator_id, forked_calculator_id, created_at)
                       VALUES (?, ?, ?, ?)""",
                    (profile.id, calculator_id, forked.id, _now()),
                )
                conn.execute(
                    "UPDATE calculators SET forks_count = forks_count + 1 WHERE id = ?",
                    (calculator_id,),
                )
        except sqlite3.Error as e:
            # do not leave an orphaned copy behind
            self.delete_calculator(profile.id, forked.id)
            raise RepositoryError(f"Failed to record fork: {e}")

        return forked

    # -------- internals --------

    def _require_visible(self, calculator_id, viewer_id):
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT user_id, is_public FROM calculators WHERE id = ?", (calculator_id,)
            ).fetchone()
        # a private calculator is indistinguishable from a missing one
        if row is None or (not row["is_public"] and row["user_id"] != viewer_id):
            raise NotFoundError("Calculator not found")

    def _check_owner(self, calculator_id, user_id, action):
        with self.get_connection() as conn:
            row = conn.execute("SELECT user_id FROM calculators WHERE id = ?", (calculator_id,)).fetchone()
        if row is None:
            raise NotFoundError("Calculator not found")
        if row["user_id"] != user_id:
            raise PermissionDeniedError(f"You can only {action} your own calculators")

    def _load(self, calculator_id, viewer_id=None):
        with self.get_connection() as conn:
            row = conn.execute(
                """SELECT c.*, p.username, p.full_name, p.avatar_url
                   FROM calculators c LEFT JOIN profiles p ON p.id = c.user_id
                   WHERE c.id = ?""",
                (calculator_id,),
            ).fetchone()
            if row is None:
                raise NotFoundError("Calculator not found")

            is_liked = is_forked = False
            if viewer_id:
                is_liked = conn.execute(
                    "SELECT 1 FROM calculator_likes WHERE user_id = ? AND calculator_id = ?",
                    (viewer_id, calculator_id),
                ).fetchone() is not None
                is_forked = conn.execute(
                    "SELECT 1 FROM calculator_forks WHERE user_id = ? AND original_calculator_id = ?",
                    (viewer_id, calculator_id),
                ).fetchone() is not None

        return Calculator(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            description=row["description"],
            prompt=row["prompt"],
            spec=CalculatorSpec.from_dict(json.loads(row["spec"])),
            is_public=bool(row["is_public"]),
            is_template=bool(row["is_template"]),
            category=row["category"],
            tags=json.loads(row["tags"] or "[]"),
            views_count=row["views_count"],
            likes_count=row["likes_count"],
            forks_count=row["forks_count"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            profile=AuthorProfile(
                id=row["user_id"],
                username=row["username"],
                full_name=row["full_name"] or None,
                avatar_url=row["avatar_url"] or None,
            ),
            is_liked=is_liked,
            is_forked=is_forked,
        )
