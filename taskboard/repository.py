"""
Board storage backend (SQLite).

Persistence for the board server: users, projects, sections, cards,
comments and card assignees. Lookups return schema objects or None;
mutations assume the caller has already resolved the ids involved.
"""
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .schema import (
    DEFAULT_SECTION_TITLES,
    Board,
    Card,
    Comment,
    Priority,
    Section,
    UserLite,
    format_timestamp,
    parse_timestamp,
    utc_now,
)


def new_id() -> str:
    return uuid.uuid4().hex


@contextmanager
def _connect(db_path: str) -> Iterator[sqlite3.Connection]:
    """Open a connection with FK enforcement and WAL mode; commit on success."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


class BoardRepository:
    """SQLite-backed store for boards."""

    def __init__(self, db_path: str = None):
        """Initialize store and create tables if needed."""
        if db_path is None:
            db_path = str(Path.home() / ".local" / "share" / "taskboard" / "board.db")
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        """Create tables if they don't exist."""
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS projects (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sections (
                    id TEXT PRIMARY KEY,
                    project_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    can_delete INTEGER NOT NULL DEFAULT 1,
                    position INTEGER NOT NULL,
                    FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS cards (
                    id TEXT PRIMARY KEY,
                    section_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    priority TEXT NOT NULL,
                    executor TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    FOREIGN KEY (section_id) REFERENCES sections(id) ON DELETE CASCADE
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS comments (
                    id TEXT PRIMARY KEY,
                    card_id TEXT NOT NULL,
                    author_id TEXT,
                    text TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (card_id) REFERENCES cards(id) ON DELETE CASCADE,
                    FOREIGN KEY (author_id) REFERENCES users(id) ON DELETE SET NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS card_assignees (
                    card_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    PRIMARY KEY (card_id, user_id),
                    FOREIGN KEY (card_id) REFERENCES cards(id) ON DELETE CASCADE,
                    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_sections_project ON sections(project_id, position)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_cards_section ON cards(section_id, position)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_comments_card ON comments(card_id, created_at)")

    # ──────────────────────────────────────────
    # Users
    # ──────────────────────────────────────────

    def create_user(self, name: str, email: str) -> UserLite:
        user = UserLite(id=new_id(), name=name, email=email)
        with _connect(self.db_path) as conn:
            conn.execute(
                "INSERT INTO users (id, name, email, created_at) VALUES (?, ?, ?, ?)",
                (user.id, user.name, user.email, format_timestamp(utc_now())),
            )
        return user

    def get_user(self, user_id: str) -> Optional[UserLite]:
        with _connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT id, name, email FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        return UserLite(**dict(row)) if row else None

    def list_users(self) -> List[UserLite]:
        with _connect(self.db_path) as conn:
            rows = conn.execute("SELECT id, name, email FROM users ORDER BY created_at, name").fetchall()
        return [UserLite(**dict(r)) for r in rows]

    # ──────────────────────────────────────────
    # Projects & sections
    # ──────────────────────────────────────────

    def create_project(self, title: str) -> Dict[str, str]:
        """Create a project seeded with Backlog, To Do, Review and Done."""
        project_id = new_id()
        with _connect(self.db_path) as conn:
            conn.execute(
                "INSERT INTO projects (id, title, created_at) VALUES (?, ?, ?)",
                (project_id, title, format_timestamp(utc_now())),
            )
            for position, section_title in enumerate(DEFAULT_SECTION_TITLES):
                conn.execute(
                    "INSERT INTO sections (id, project_id, title, can_delete, position) VALUES (?, ?, ?, ?, ?)",
                    (new_id(), project_id, section_title, 0 if position == 0 else 1, position),
                )
        return {"id": project_id, "title": title}

    def get_project(self, project_id: str) -> Optional[Dict[str, str]]:
        with _connect(self.db_path) as conn:
            row = conn.execute("SELECT id, title FROM projects WHERE id = ?", (project_id,)).fetchone()
        return dict(row) if row else None

    def list_projects(self) -> List[Dict[str, str]]:
        with _connect(self.db_path) as conn:
            rows = conn.execute("SELECT id, title FROM projects ORDER BY created_at").fetchall()
        return [dict(r) for r in rows]

    def get_section(self, project_id: str, section_id: str) -> Optional[Section]:
        """Section (with its cards) if it belongs to the project."""
        with _connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM sections WHERE id = ? AND project_id = ?", (section_id, project_id)
            ).fetchone()
            if not row:
                return None
            section = self._row_to_section(row)
            section.cards = self._load_cards(conn, [section_id]).get(section_id, [])
        return section

    def get_backlog(self, project_id: str) -> Optional[Section]:
        with _connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT id FROM sections WHERE project_id = ? AND can_delete = 0 ORDER BY position LIMIT 1",
                (project_id,),
            ).fetchone()
        return self.get_section(project_id, row["id"]) if row else None

    def create_section(self, project_id: str, title: str) -> Section:
        section = Section(id=new_id(), title=title, can_delete=True)
        with _connect(self.db_path) as conn:
            position = conn.execute(
                "SELECT COALESCE(MAX(position), -1) + 1 FROM sections WHERE project_id = ?",
                (project_id,),
            ).fetchone()[0]
            conn.execute(
                "INSERT INTO sections (id, project_id, title, can_delete, position) VALUES (?, ?, ?, 1, ?)",
                (section.id, project_id, title, position),
            )
        return section

    def delete_section(self, section_id: str, backlog_id: str) -> None:
        """Move the section's cards to the backlog, then drop the section."""
        with _connect(self.db_path) as conn:
            self._relocate_cards(conn, [section_id], backlog_id)
            conn.execute("DELETE FROM sections WHERE id = ?", (section_id,))

    def delete_deletable_sections(self, project_id: str, backlog_id: str) -> None:
        with _connect(self.db_path) as conn:
            ids = [
                r["id"] for r in conn.execute(
                    "SELECT id FROM sections WHERE project_id = ? AND can_delete = 1 ORDER BY position",
                    (project_id,),
                )
            ]
            self._relocate_cards(conn, ids, backlog_id)
            conn.executemany("DELETE FROM sections WHERE id = ?", [(i,) for i in ids])

    def clear_section(self, section_id: str) -> int:
        """Delete every card in a section (comments and assignments cascade)."""
        with _connect(self.db_path) as conn:
            cur = conn.execute("DELETE FROM cards WHERE section_id = ?", (section_id,))
            return cur.rowcount

    def _relocate_cards(self, conn: sqlite3.Connection, section_ids: List[str], target_id: str) -> None:
        if not section_ids:
            return
        marks = ",".join("?" for _ in section_ids)
        rows = conn.execute(
            f"""SELECT c.id FROM cards c JOIN sections s ON s.id = c.section_id
                WHERE c.section_id IN ({marks}) ORDER BY s.position, c.position""",
            section_ids,
        ).fetchall()
        position = self._next_card_position(conn, target_id)
        for offset, row in enumerate(rows):
            conn.execute(
                "UPDATE cards SET section_id = ?, position = ? WHERE id = ?",
                (target_id, position + offset, row["id"]),
            )

    # ──────────────────────────────────────────
    # Board
    # ──────────────────────────────────────────

    def get_board(self, project_id: str) -> Optional[Board]:
        """Full board: sections in position order, cards with comments and assignees."""
        project = self.get_project(project_id)
        if not project:
            return None
        with _connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM sections WHERE project_id = ? ORDER BY position", (project_id,)
            ).fetchall()
            sections = [self._row_to_section(r) for r in rows]
            cards = self._load_cards(conn, [s.id for s in sections])
        for section in sections:
            section.cards = cards.get(section.id, [])
        return Board(id=f"{project_id}-board", title=project["title"], sections=sections)

    # ──────────────────────────────────────────
    # Cards
    # ──────────────────────────────────────────

    def get_card(self, project_id: str, card_id: str) -> Optional[Card]:
        """Card (with comments and assignees) if it belongs to the project."""
        with _connect(self.db_path) as conn:
            row = conn.execute(
                """SELECT c.* FROM cards c JOIN sections s ON s.id = c.section_id
                   WHERE c.id = ? AND s.project_id = ?""",
                (card_id, project_id),
            ).fetchone()
            if not row:
                return None
            card = self._row_to_card(row)
            card.comments = self._load_comments(conn, [card_id]).get(card_id, [])
            card.assignees = self._load_assignees(conn, [card_id]).get(card_id, [])
        return card

    def create_card(
        self,
        section_id: str,
        title: str,
        priority: Priority,
        description: str = "",
        executor: str = "",
    ) -> Card:
        card = Card(
            id=new_id(),
            title=title,
            section_id=section_id,
            description=description,
            priority=priority,
            executor=executor,
        )
        with _connect(self.db_path) as conn:
            conn.execute(
                """INSERT INTO cards (id, section_id, title, description, priority, executor, created_at, position)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    card.id,
                    section_id,
                    title,
                    description,
                    priority.value,
                    executor,
                    format_timestamp(card.created_at),
                    self._next_card_position(conn, section_id),
                ),
            )
        return card

    def update_card(
        self,
        project_id: str,
        card_id: str,
        title: str,
        priority: Priority,
        description: str = "",
        executor: str = "",
        section_id: Optional[str] = None,
    ) -> Optional[Card]:
        current = self.get_card(project_id, card_id)
        if current is None:
            return None
        with _connect(self.db_path) as conn:
            conn.execute(
                "UPDATE cards SET title = ?, description = ?, priority = ?, executor = ? WHERE id = ?",
                (title, description, priority.value, executor, card_id),
            )
            if section_id and section_id != current.section_id:
                self._append_to_section(conn, card_id, section_id)
        return self.get_card(project_id, card_id)

    def move_card(self, project_id: str, card_id: str, section_id: str) -> Optional[Card]:
        current = self.get_card(project_id, card_id)
        if current is None:
            return None
        if current.section_id != section_id:
            with _connect(self.db_path) as conn:
                self._append_to_section(conn, card_id, section_id)
        return self.get_card(project_id, card_id)

    def delete_card(self, project_id: str, card_id: str) -> bool:
        if self.get_card(project_id, card_id) is None:
            return False
        with _connect(self.db_path) as conn:
            conn.execute("DELETE FROM cards WHERE id = ?", (card_id,))
        return True

    def bulk_delete(self, project_id: str, priority: Priority, section_id: Optional[str] = None) -> int:
        """Delete cards of one priority in a section, or across the whole project."""
        with _connect(self.db_path) as conn:
            if section_id:
                cur = conn.execute(
                    "DELETE FROM cards WHERE section_id = ? AND priority = ?",
                    (section_id, priority.value),
                )
            else:
                cur = conn.execute(
                    """DELETE FROM cards WHERE priority = ? AND section_id IN
                       (SELECT id FROM sections WHERE project_id = ?)""",
                    (priority.value, project_id),
                )
            return cur.rowcount

    def _append_to_section(self, conn: sqlite3.Connection, card_id: str, section_id: str) -> None:
        conn.execute(
            "UPDATE cards SET section_id = ?, position = ? WHERE id = ?",
            (section_id, self._next_card_position(conn, section_id), card_id),
        )

    def _next_card_position(self, conn: sqlite3.Connection, section_id: str) -> int:
        return conn.execute(
            "SELECT COALESCE(MAX(position), -1) + 1 FROM cards WHERE section_id = ?",
            (section_id,),
        ).fetchone()[0]

    # ──────────────────────────────────────────
    # Assignees
    # ──────────────────────────────────────────

    def assign(self, card_id: str, user_id: str) -> List[UserLite]:
        """Link a user to a card. Assigning twice is a no-op."""
        with _connect(self.db_path) as conn:
            conn.execute(
                "INSERT OR IGNORE INTO card_assignees (card_id, user_id) VALUES (?, ?)",
                (card_id, user_id),
            )
            return self._load_assignees(conn, [card_id]).get(card_id, [])

    def unassign(self, card_id: str, user_id: str) -> List[UserLite]:
        with _connect(self.db_path) as conn:
            conn.execute(
                "DELETE FROM card_assignees WHERE card_id = ? AND user_id = ?",
                (card_id, user_id),
            )
            return self._load_assignees(conn, [card_id]).get(card_id, [])

    # ──────────────────────────────────────────
    # Comments
    # ──────────────────────────────────────────

    def list_comments(self, card_id: str) -> List[Comment]:
        with _connect(self.db_path) as conn:
            return self._load_comments(conn, [card_id]).get(card_id, [])

    def create_comment(self, card_id: str, author_id: str, text: str) -> Comment:
        comment = Comment(id=new_id(), text=text, author=self.get_user(author_id))
        with _connect(self.db_path) as conn:
            conn.execute(
                "INSERT INTO comments (id, card_id, author_id, text, created_at) VALUES (?, ?, ?, ?, ?)",
                (comment.id, card_id, author_id, text, format_timestamp(comment.created_at)),
            )
        return comment

    def get_comment_owner(self, project_id: str, comment_id: str) -> Optional[Dict[str, Optional[str]]]:
        """``{"author_id": ...}`` if the comment belongs to a card of the project."""
        with _connect(self.db_path) as conn:
            row = conn.execute(
                """SELECT cm.author_id FROM comments cm
                   JOIN cards c ON c.id = cm.card_id
                   JOIN sections s ON s.id = c.section_id
                   WHERE cm.id = ? AND s.project_id = ?""",
                (comment_id, project_id),
            ).fetchone()
        return dict(row) if row else None

    def update_comment(self, comment_id: str, text: str) -> Comment:
        with _connect(self.db_path) as conn:
            conn.execute("UPDATE comments SET text = ? WHERE id = ?", (text, comment_id))
            row = conn.execute(
                "SELECT id, text, created_at FROM comments WHERE id = ?", (comment_id,)
            ).fetchone()
        return Comment(id=row["id"], text=row["text"], created_at=parse_timestamp(row["created_at"]))

    def delete_comment(self, comment_id: str) -> None:
        with _connect(self.db_path) as conn:
            conn.execute("DELETE FROM comments WHERE id = ?", (comment_id,))

    # ──────────────────────────────────────────
    # Row helpers
    # ──────────────────────────────────────────

    def _load_cards(self, conn: sqlite3.Connection, section_ids: List[str]) -> Dict[str, List[Card]]:
        if not section_ids:
            return {}
        marks = ",".join("?" for _ in section_ids)
        rows = conn.execute(
            f"SELECT * FROM cards WHERE section_id IN ({marks}) ORDER BY position, created_at",
            section_ids,
        ).fetchall()
        cards = [self._row_to_card(r) for r in rows]
        card_ids = [c.id for c in cards]
        comments = self._load_comments(conn, card_ids)
        assignees = self._load_assignees(conn, card_ids)
        by_section: Dict[str, List[Card]] = {}
        for card in cards:
            card.comments = comments.get(card.id, [])
            card.assignees = assignees.get(card.id, [])
            by_section.setdefault(card.section_id, []).append(card)
        return by_section

    def _load_comments(self, conn: sqlite3.Connection, card_ids: List[str]) -> Dict[str, List[Comment]]:
        if not card_ids:
            return {}
        marks = ",".join("?" for _ in card_ids)
        rows = conn.execute(
            f"""SELECT cm.id, cm.card_id, cm.text, cm.created_at,
                       u.id AS author_id, u.name AS author_name, u.email AS author_email
                FROM comments cm LEFT JOIN users u ON u.id = cm.author_id
                WHERE cm.card_id IN ({marks}) ORDER BY cm.created_at, cm.rowid""",
            card_ids,
        ).fetchall()
        result: Dict[str, List[Comment]] = {}
        for r in rows:
            author = None
            if r["author_id"]:
                author = UserLite(id=r["author_id"], name=r["author_name"], email=r["author_email"])
            result.setdefault(r["card_id"], []).append(
                Comment(id=r["id"], text=r["text"], created_at=parse_timestamp(r["created_at"]), author=author)
            )
        return result

    def _load_assignees(self, conn: sqlite3.Connection, card_ids: List[str]) -> Dict[str, List[UserLite]]:
        if not card_ids:
            return {}
        marks = ",".join("?" for _ in card_ids)
        rows = conn.execute(
            f"""SELECT ca.card_id, u.id, u.name, u.email
                FROM card_assignees ca JOIN users u ON u.id = ca.user_id
                WHERE ca.card_id IN ({marks}) ORDER BY u.name, u.id""",
            card_ids,
        ).fetchall()
        result: Dict[str, List[UserLite]] = {}
        for r in rows:
            result.setdefault(r["card_id"], []).append(UserLite(id=r["id"], name=r["name"], email=r["email"]))
        return result

    def _row_to_section(self, row: sqlite3.Row) -> Section:
        return Section(id=row["id"], title=row["title"], can_delete=bool(row["can_delete"]))

    def _row_to_card(self, row: sqlite3.Row) -> Card:
        """Convert a database row to a Card (without comments/assignees)."""
        return Card(
            id=row["id"],
            title=row["title"],
            section_id=row["section_id"],
            description=row["description"] or "",
            priority=Priority.from_str(row["priority"]),
            executor=row["executor"] or "",
            created_at=parse_timestamp(row["created_at"]),
        )
