# src/taskdeck/storage/store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.models import (
    Project,
    Task,
    TaskStatus,
    UserStory,
    new_id,
    normalize_tags,
)
from .serialization import dt_to_str, entries_from_list, entries_to_list, str_to_dt

logger = logging.getLogger(__name__)

_PROJECT_COLUMNS = ("title", "description", "tags", "is_archived", "sort_order")
_STORY_COLUMNS = ("project_id", "title", "description", "tags", "is_archived", "sort_order")
_TASK_COLUMNS = (
    "user_story_id",
    "title",
    "description",
    "tags",
    "status",
    "start_date",
    "due_date",
    "last_updated_at",
    "completed_at",
    "is_blocked",
    "blocked_at",
    "blocked_by",
    "blocked_reason",
    "activity_log",
    "is_archived",
)


class TrackerStore:
    """
    SQLite store for projects, user stories and tasks.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Datetimes are stored as ISO-8601 text, tags and the activity log as JSON.

    Writes that touch more than one row (cascading deletes, reorders, moves,
    import) run in a single transaction: either every row changes or none does.
    sqlite3.Error is never caught here; it reaches the caller unchanged.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "taskdeck.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info(
            "TrackerStore ready db=%s projects=%s stories=%s tasks=%s",
            self._db_path,
            self._count("projects"),
            self._count("user_stories"),
            self._count("tasks"),
        )

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")

    @contextlib.contextmanager
    def _tx(self) -> Iterator[sqlite3.Connection]:
        """One write transaction: commit on success, roll back on any exception."""
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS projects (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    tags TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL,
                    is_archived INTEGER NOT NULL DEFAULT 0,
                    sort_order INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS user_stories (
                    id TEXT PRIMARY KEY,
                    project_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    tags TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL,
                    is_archived INTEGER NOT NULL DEFAULT 0,
                    sort_order INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    user_story_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    tags TEXT NOT NULL DEFAULT '[]',
                    status TEXT NOT NULL DEFAULT 'new',
                    created_at TEXT NOT NULL,
                    start_date TEXT,
                    due_date TEXT,
                    last_updated_at TEXT NOT NULL,
                    completed_at TEXT,
                    is_blocked INTEGER NOT NULL DEFAULT 0,
                    blocked_at TEXT,
                    blocked_by TEXT NOT NULL DEFAULT '',
                    blocked_reason TEXT NOT NULL DEFAULT '',
                    activity_log TEXT NOT NULL DEFAULT '[]',
                    is_archived INTEGER NOT NULL DEFAULT 0
                )
                """
            )

            # Migrations (safe): add missing columns.
            def add_col(table: str, name: str, decl: str) -> None:
                cur.execute(f"PRAGMA table_info({table})")
                cols = {row["name"] for row in cur.fetchall()}
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                logger.info("TrackerStore migration: added column %s.%s", table, name)

            # Early databases had no manual ordering or tags.
            add_col("projects", "sort_order", "INTEGER NOT NULL DEFAULT 0")
            add_col("projects", "tags", "TEXT NOT NULL DEFAULT '[]'")
            add_col("user_stories", "sort_order", "INTEGER NOT NULL DEFAULT 0")
            add_col("user_stories", "tags", "TEXT NOT NULL DEFAULT '[]'")

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_stories_project ON user_stories(project_id, sort_order)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_story ON tasks(user_story_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status, is_archived)")

            conn.commit()
        finally:
            conn.close()

    def _count(self, table: str) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
            return int(n)
        finally:
            conn.close()

    @staticmethod
    def _tags_to_str(tags: Iterable[str] | None) -> str:
        return json.dumps(normalize_tags(tags), ensure_ascii=False)

    @staticmethod
    def _str_to_tags(s: str | None) -> list[str]:
        if not s:
            return []
        val = json.loads(s)
        return val if isinstance(val, list) else []

    @classmethod
    def _encode(cls, name: str, value: Any) -> Any:
        """Python value -> SQLite column value for a named field."""
        if name == "tags":
            return cls._tags_to_str(value)
        if name == "activity_log":
            return json.dumps(entries_to_list(value), ensure_ascii=False)
        if name == "status":
            return TaskStatus(value).value
        if name in ("is_archived", "is_blocked"):
            return 1 if value else 0
        if isinstance(value, datetime):
            return dt_to_str(value)
        return value

    def _row_to_project(self, row: sqlite3.Row) -> Project:
        return Project(
            id=str(row["id"]),
            title=str(row["title"]),
            description=str(row["description"] or ""),
            tags=self._str_to_tags(row["tags"]),
            created_at=str_to_dt(row["created_at"]),
            is_archived=bool(row["is_archived"]),
            sort_order=int(row["sort_order"] or 0),
        )

    def _row_to_story(self, row: sqlite3.Row) -> UserStory:
        return UserStory(
            id=str(row["id"]),
            project_id=str(row["project_id"]),
            title=str(row["title"]),
            description=str(row["description"] or ""),
            tags=self._str_to_tags(row["tags"]),
            created_at=str_to_dt(row["created_at"]),
            is_archived=bool(row["is_archived"]),
            sort_order=int(row["sort_order"] or 0),
        )

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            user_story_id=str(row["user_story_id"]),
            title=str(row["title"]),
            description=str(row["description"] or ""),
            tags=self._str_to_tags(row["tags"]),
            status=TaskStatus.from_db(row["status"]),
            created_at=str_to_dt(row["created_at"]),
            start_date=str_to_dt(row["start_date"]),
            due_date=str_to_dt(row["due_date"]),
            last_updated_at=str_to_dt(row["last_updated_at"]),
            completed_at=str_to_dt(row["completed_at"]),
            is_blocked=bool(row["is_blocked"]),
            blocked_at=str_to_dt(row["blocked_at"]),
            blocked_by=str(row["blocked_by"] or ""),
            blocked_reason=str(row["blocked_reason"] or ""),
            activity_log=entries_from_list(json.loads(row["activity_log"] or "[]")),
            is_archived=bool(row["is_archived"]),
        )

    def _update_fields(
        self,
        table: str,
        allowed: tuple[str, ...],
        row_id: str,
        fields: Mapping[str, Any],
    ) -> bool:
        with self._tx() as conn:
            return self._write_fields(conn, table, allowed, row_id, fields)

    def _write_fields(
        self,
        conn: sqlite3.Connection,
        table: str,
        allowed: tuple[str, ...],
        row_id: str,
        fields: Mapping[str, Any],
    ) -> bool:
        """UPDATE one row inside the caller's transaction. Returns whether the row exists."""
        unknown = set(fields) - set(allowed)
        if unknown:
            raise ValueError(f"unknown {table} fields: {', '.join(sorted(unknown))}")
        if not fields:
            row = conn.execute(f"SELECT 1 FROM {table} WHERE id = ?", (row_id,)).fetchone()
            return row is not None

        assignments = ", ".join(f"{name} = ?" for name in fields)
        params = [self._encode(name, value) for name, value in fields.items()]
        params.append(row_id)

        cur = conn.execute(f"UPDATE {table} SET {assignments} WHERE id = ?", params)
        changed = cur.rowcount == 1
        logger.debug("Updated %s id=%s fields=%s changed=%s", table, row_id, sorted(fields), changed)
        return changed

    @staticmethod
    def _compact(conn: sqlite3.Connection, table: str, scope: tuple[str, str] | None) -> int:
        """
        Renumber non-archived rows to 0..n-1, keeping their current order.

        `scope` is (column, value) for the sibling set, or None for all rows.
        Returns n, i.e. the sort_order the next appended row should get.
        """
        where = "is_archived = 0"
        params: list[Any] = []
        if scope is not None:
            where += f" AND {scope[0]} = ?"
            params.append(scope[1])
        rows = conn.execute(
            f"SELECT id FROM {table} WHERE {where} ORDER BY sort_order ASC, created_at ASC",
            params,
        ).fetchall()
        for position, row in enumerate(rows):
            conn.execute(f"UPDATE {table} SET sort_order = ? WHERE id = ?", (position, row["id"]))
        return len(rows)

    @staticmethod
    def _apply_order(
        conn: sqlite3.Connection,
        table: str,
        scope: tuple[str, str] | None,
        ordered_ids: list[str],
    ) -> None:
        """
        Give `ordered_ids` sort_order 0..k-1, then append the remaining
        non-archived siblings in their previous relative order.
        """
        where = "is_archived = 0"
        params: list[Any] = []
        if scope is not None:
            where += f" AND {scope[0]} = ?"
            params.append(scope[1])
        rows = conn.execute(
            f"SELECT id FROM {table} WHERE {where} ORDER BY sort_order ASC, created_at ASC",
            params,
        ).fetchall()
        sibling_ids = [row["id"] for row in rows]
        known = set(sibling_ids)

        head: list[str] = []
        for rid in ordered_ids:
            if rid in known and rid not in head:
                head.append(rid)
        tail = [rid for rid in sibling_ids if rid not in head]

        for position, rid in enumerate(head + tail):
            conn.execute(f"UPDATE {table} SET sort_order = ? WHERE id = ?", (position, rid))

    # ---- projects ----

    def add_project(
        self,
        *,
        title: str,
        created_at: datetime,
        description: str = "",
        tags: Iterable[str] | None = None,
    ) -> Project:
        if not title or not title.strip():
            raise ValueError("title is required")

        project = Project(
            id=new_id(),
            title=title.strip(),
            description=description or "",
            tags=normalize_tags(tags),
            created_at=created_at,
        )
        with self._tx() as conn:
            project.sort_order = self._compact(conn, "projects", None)
            conn.execute(
                """
                INSERT INTO projects(id, title, description, tags, created_at, is_archived, sort_order)
                VALUES (?, ?, ?, ?, ?, 0, ?)
                """,
                (
                    project.id,
                    project.title,
                    project.description,
                    self._tags_to_str(project.tags),
                    dt_to_str(project.created_at),
                    project.sort_order,
                ),
            )
        logger.debug("Project added id=%s sort_order=%s", project.id, project.sort_order)
        return project

    def get_project(self, project_id: str) -> Project | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
            return self._row_to_project(row) if row else None
        finally:
            conn.close()

    def list_projects(self, *, include_archived: bool = False) -> list[Project]:
        conn = self._get_conn()
        try:
            sql = "SELECT * FROM projects"
            if not include_archived:
                sql += " WHERE is_archived = 0"
            sql += " ORDER BY is_archived ASC, sort_order ASC, created_at ASC"
            return [self._row_to_project(r) for r in conn.execute(sql).fetchall()]
        finally:
            conn.close()

    def update_project_fields(self, project_id: str, fields: Mapping[str, Any]) -> bool:
        return self._update_fields("projects", _PROJECT_COLUMNS, project_id, fields)

    def set_project_archived(self, project_id: str, archived: bool) -> bool:
        """
        Flip the archive flag and keep the non-archived order contiguous.
        A restored project goes to the end of the order.
        """
        with self._tx() as conn:
            row = conn.execute("SELECT is_archived FROM projects WHERE id = ?", (project_id,)).fetchone()
            if row is None:
                return False
            if archived:
                conn.execute("UPDATE projects SET is_archived = 1 WHERE id = ?", (project_id,))
                self._compact(conn, "projects", None)
            elif row["is_archived"]:
                sort_order = self._compact(conn, "projects", None)
                conn.execute(
                    "UPDATE projects SET is_archived = 0, sort_order = ? WHERE id = ?",
                    (sort_order, project_id),
                )
        logger.info("Project %s %s", project_id, "archived" if archived else "restored")
        return True

    def delete_project(self, project_id: str) -> tuple[int, int]:
        """
        Delete a project with all of its stories and their tasks.

        Returns (stories_removed, tasks_removed).
        """
        with self._tx() as conn:
            cur = conn.execute(
                """
                DELETE FROM tasks
                WHERE user_story_id IN (SELECT id FROM user_stories WHERE project_id = ?)
                """,
                (project_id,),
            )
            tasks_removed = cur.rowcount
            cur = conn.execute("DELETE FROM user_stories WHERE project_id = ?", (project_id,))
            stories_removed = cur.rowcount
            conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
            self._compact(conn, "projects", None)
        logger.info(
            "Project deleted id=%s stories=%d tasks=%d", project_id, stories_removed, tasks_removed
        )
        return stories_removed, tasks_removed

    def reorder_projects(self, project_ids: list[str]) -> None:
        with self._tx() as conn:
            self._apply_order(conn, "projects", None, list(project_ids))

    # ---- user stories ----

    def count_user_stories(self) -> int:
        return self._count("user_stories")

    def add_user_story(
        self,
        *,
        project_id: str,
        title: str,
        created_at: datetime,
        description: str = "",
        tags: Iterable[str] | None = None,
    ) -> UserStory:
        if not title or not title.strip():
            raise ValueError("title is required")

        story = UserStory(
            id=new_id(),
            project_id=project_id,
            title=title.strip(),
            description=description or "",
            tags=normalize_tags(tags),
            created_at=created_at,
        )
        with self._tx() as conn:
            story.sort_order = self._compact(conn, "user_stories", ("project_id", project_id))
            conn.execute(
                """
                INSERT INTO user_stories(
                    id, project_id, title, description, tags, created_at, is_archived, sort_order
                )
                VALUES (?, ?, ?, ?, ?, ?, 0, ?)
                """,
                (
                    story.id,
                    story.project_id,
                    story.title,
                    story.description,
                    self._tags_to_str(story.tags),
                    dt_to_str(story.created_at),
                    story.sort_order,
                ),
            )
        logger.debug(
            "User story added id=%s project=%s sort_order=%s", story.id, project_id, story.sort_order
        )
        return story

    def get_user_story(self, story_id: str) -> UserStory | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM user_stories WHERE id = ?", (story_id,)).fetchone()
            return self._row_to_story(row) if row else None
        finally:
            conn.close()

    def list_user_stories(
        self,
        project_id: str | None = None,
        *,
        include_archived: bool = False,
    ) -> list[UserStory]:
        clauses: list[str] = []
        params: list[Any] = []
        if project_id is not None:
            clauses.append("project_id = ?")
            params.append(project_id)
        if not include_archived:
            clauses.append("is_archived = 0")

        sql = "SELECT * FROM user_stories"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY is_archived ASC, sort_order ASC, created_at ASC"

        conn = self._get_conn()
        try:
            return [self._row_to_story(r) for r in conn.execute(sql, params).fetchall()]
        finally:
            conn.close()

    def update_user_story_fields(
        self,
        story_id: str,
        fields: Mapping[str, Any],
        *,
        project_id: str | None = None,
    ) -> bool:
        """
        Write story fields and, with `project_id`, move the story there,
        all in one transaction.
        """
        fields = dict(fields)
        if "project_id" in fields or "sort_order" in fields:
            raise ValueError("pass project_id= or use reorder_user_stories to change placement")
        with self._tx() as conn:
            changed = self._write_fields(conn, "user_stories", _STORY_COLUMNS, story_id, fields)
            if changed and project_id is not None:
                changed = self._move_story(conn, story_id, project_id)
        return changed

    def move_user_story(self, story_id: str, project_id: str) -> bool:
        with self._tx() as conn:
            return self._move_story(conn, story_id, project_id)

    def _move_story(self, conn: sqlite3.Connection, story_id: str, project_id: str) -> bool:
        """
        Move a story to another project, appending it at the end of the
        destination's order. The source siblings are renumbered.
        """
        row = conn.execute("SELECT project_id FROM user_stories WHERE id = ?", (story_id,)).fetchone()
        if row is None:
            return False
        source = str(row["project_id"])
        if source == project_id:
            return True

        sort_order = self._compact(conn, "user_stories", ("project_id", project_id))
        conn.execute(
            "UPDATE user_stories SET project_id = ?, sort_order = ? WHERE id = ?",
            (project_id, sort_order, story_id),
        )
        self._compact(conn, "user_stories", ("project_id", source))
        logger.info("User story %s moved %s -> %s", story_id, source, project_id)
        return True

    def reorder_user_stories(self, project_id: str, story_ids: list[str]) -> None:
        with self._tx() as conn:
            self._apply_order(conn, "user_stories", ("project_id", project_id), list(story_ids))

    def set_user_story_archived(self, story_id: str, archived: bool) -> bool:
        with self._tx() as conn:
            row = conn.execute(
                "SELECT project_id, is_archived FROM user_stories WHERE id = ?", (story_id,)
            ).fetchone()
            if row is None:
                return False
            scope = ("project_id", str(row["project_id"]))
            if archived:
                conn.execute("UPDATE user_stories SET is_archived = 1 WHERE id = ?", (story_id,))
                self._compact(conn, "user_stories", scope)
            elif row["is_archived"]:
                sort_order = self._compact(conn, "user_stories", scope)
                conn.execute(
                    "UPDATE user_stories SET is_archived = 0, sort_order = ? WHERE id = ?",
                    (sort_order, story_id),
                )
        logger.info("User story %s %s", story_id, "archived" if archived else "restored")
        return True

    def delete_user_story(self, story_id: str) -> int:
        """Delete a story and its tasks. Returns the number of tasks removed."""
        with self._tx() as conn:
            row = conn.execute(
                "SELECT project_id FROM user_stories WHERE id = ?", (story_id,)
            ).fetchone()
            cur = conn.execute("DELETE FROM tasks WHERE user_story_id = ?", (story_id,))
            tasks_removed = cur.rowcount
            conn.execute("DELETE FROM user_stories WHERE id = ?", (story_id,))
            if row is not None:
                self._compact(conn, "user_stories", ("project_id", str(row["project_id"])))
        logger.info("User story deleted id=%s tasks=%d", story_id, tasks_removed)
        return tasks_removed

    # ---- tasks ----

    def count_tasks(self) -> int:
        return self._count("tasks")

    def add_task(
        self,
        *,
        user_story_id: str,
        title: str,
        created_at: datetime,
        description: str = "",
        tags: Iterable[str] | None = None,
        start_date: datetime | None = None,
        due_date: datetime | None = None,
        last_updated_at: datetime | None = None,
    ) -> Task:
        if not title or not title.strip():
            raise ValueError("title is required")

        task = Task(
            id=new_id(),
            user_story_id=user_story_id,
            title=title.strip(),
            description=description or "",
            tags=normalize_tags(tags),
            status=TaskStatus.NEW,
            created_at=created_at,
            start_date=start_date,
            due_date=due_date,
            last_updated_at=last_updated_at or created_at,
        )
        with self._tx() as conn:
            self._insert_task(conn, task)
        logger.debug("Task added id=%s story=%s", task.id, user_story_id)
        return task

    def _insert_task(self, conn: sqlite3.Connection, task: Task) -> None:
        conn.execute(
            """
            INSERT INTO tasks(
                id, user_story_id, title, description, tags, status,
                created_at, start_date, due_date, last_updated_at, completed_at,
                is_blocked, blocked_at, blocked_by, blocked_reason,
                activity_log, is_archived
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.id,
                task.user_story_id,
                task.title,
                task.description,
                self._encode("tags", task.tags),
                self._encode("status", task.status),
                dt_to_str(task.created_at),
                dt_to_str(task.start_date),
                dt_to_str(task.due_date),
                dt_to_str(task.last_updated_at),
                dt_to_str(task.completed_at),
                self._encode("is_blocked", task.is_blocked),
                dt_to_str(task.blocked_at),
                task.blocked_by,
                task.blocked_reason,
                self._encode("activity_log", task.activity_log),
                self._encode("is_archived", task.is_archived),
            ),
        )

    def get_task(self, task_id: str) -> Task | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def list_tasks(
        self,
        *,
        user_story_ids: Iterable[str] | None = None,
        status: TaskStatus | None = None,
        include_archived: bool = False,
    ) -> list[Task]:
        clauses: list[str] = []
        params: list[Any] = []
        if user_story_ids is not None:
            ids = list(user_story_ids)
            if not ids:
                return []
            clauses.append(f"user_story_id IN ({','.join('?' for _ in ids)})")
            params.extend(ids)
        if status is not None:
            clauses.append("status = ?")
            params.append(TaskStatus(status).value)
        if not include_archived:
            clauses.append("is_archived = 0")

        sql = "SELECT * FROM tasks"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at ASC"

        conn = self._get_conn()
        try:
            return [self._row_to_task(r) for r in conn.execute(sql, params).fetchall()]
        finally:
            conn.close()

    def list_active_tasks(self) -> list[Task]:
        """Non-archived tasks that are not completed (the dashboard input)."""
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM tasks
                WHERE is_archived = 0 AND status != 'completed'
                ORDER BY created_at ASC
                """
            ).fetchall()
            return [self._row_to_task(r) for r in rows]
        finally:
            conn.close()

    def list_blocked_tasks(self) -> list[Task]:
        return self.list_tasks(status=TaskStatus.BLOCKED)

    def list_completed_tasks(self) -> list[Task]:
        """Completed or archived tasks (the history view input)."""
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM tasks
                WHERE is_archived = 1 OR status = 'completed'
                ORDER BY created_at ASC
                """
            ).fetchall()
            return [self._row_to_task(r) for r in rows]
        finally:
            conn.close()

    def update_task_fields(self, task_id: str, fields: Mapping[str, Any]) -> bool:
        """Write a set of task fields in one UPDATE (all or nothing)."""
        return self._update_fields("tasks", _TASK_COLUMNS, task_id, fields)

    def set_task_archived(self, task_id: str, archived: bool) -> bool:
        return self._update_fields("tasks", _TASK_COLUMNS, task_id, {"is_archived": archived})

    def delete_task(self, task_id: str) -> bool:
        with self._tx() as conn:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            removed = cur.rowcount == 1
        logger.debug("Task deleted id=%s removed=%s", task_id, removed)
        return removed

    # ---- whole-store operations ----

    def cleanup_orphans(self) -> tuple[int, int]:
        """
        Remove stories whose project is gone, then tasks whose story is gone.

        Returns (stories_removed, tasks_removed).
        """
        with self._tx() as conn:
            cur = conn.execute(
                "DELETE FROM user_stories WHERE project_id NOT IN (SELECT id FROM projects)"
            )
            stories_removed = cur.rowcount
            cur = conn.execute(
                "DELETE FROM tasks WHERE user_story_id NOT IN (SELECT id FROM user_stories)"
            )
            tasks_removed = cur.rowcount
        if stories_removed or tasks_removed:
            logger.warning(
                "Removed orphaned records: stories=%d tasks=%d", stories_removed, tasks_removed
            )
        return stories_removed, tasks_removed

    def dump(self) -> tuple[list[Project], list[UserStory], list[Task]]:
        """Every record, archived included, read in one connection."""
        conn = self._get_conn()
        try:
            projects = [
                self._row_to_project(r)
                for r in conn.execute("SELECT * FROM projects ORDER BY sort_order, created_at")
            ]
            stories = [
                self._row_to_story(r)
                for r in conn.execute(
                    "SELECT * FROM user_stories ORDER BY project_id, sort_order, created_at"
                )
            ]
            tasks = [
                self._row_to_task(r) for r in conn.execute("SELECT * FROM tasks ORDER BY created_at")
            ]
            return projects, stories, tasks
        finally:
            conn.close()

    def replace_all(
        self,
        projects: Iterable[Project],
        stories: Iterable[UserStory],
        tasks: Iterable[Task],
    ) -> None:
        """Swap the whole store contents in one transaction."""
        projects, stories, tasks = list(projects), list(stories), list(tasks)
        with self._tx() as conn:
            self._clear(conn)
            conn.executemany(
                """
                INSERT INTO projects(id, title, description, tags, created_at, is_archived, sort_order)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        p.id,
                        p.title,
                        p.description,
                        self._encode("tags", p.tags),
                        dt_to_str(p.created_at),
                        self._encode("is_archived", p.is_archived),
                        p.sort_order,
                    )
                    for p in projects
                ],
            )
            conn.executemany(
                """
                INSERT INTO user_stories(
                    id, project_id, title, description, tags, created_at, is_archived, sort_order
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        s.id,
                        s.project_id,
                        s.title,
                        s.description,
                        self._encode("tags", s.tags),
                        dt_to_str(s.created_at),
                        self._encode("is_archived", s.is_archived),
                        s.sort_order,
                    )
                    for s in stories
                ],
            )
            for task in tasks:
                self._insert_task(conn, task)
        logger.info(
            "Store replaced: projects=%d stories=%d tasks=%d", len(projects), len(stories), len(tasks)
        )

    def clear_all(self) -> None:
        with self._tx() as conn:
            self._clear(conn)
        logger.info("Store cleared")

    @staticmethod
    def _clear(conn: sqlite3.Connection) -> None:
        conn.execute("DELETE FROM tasks")
        conn.execute("DELETE FROM user_stories")
        conn.execute("DELETE FROM projects")
