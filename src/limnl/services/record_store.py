"""SQLite-backed record store for dreams, bugs, mind dumps and analyses."""

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Sequence

from limnl.models.records import (
    AnalysisCard,
    AnalysisTask,
    Bug,
    BugInput,
    BugStatus,
    Card,
    CreativePrompts,
    Dream,
    DreamAnalysis,
    DreamInput,
    MindDump,
    MindDumpAnalysis,
    MindDumpInput,
)
from limnl.models.results import CreativePromptsResult, DreamAnalysisResult
from limnl.services.deck import find_card, load_deck
from limnl.services.exceptions import (
    DuplicateRecordError,
    ForeignKeyViolation,
    RecordNotFoundError,
)
from limnl.services.migrations import run_migrations
from limnl.utils.logging import get_logger


logger = get_logger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_list(value: Optional[str]) -> list:
    return json.loads(value) if value else []


def _translate_integrity_error(e: sqlite3.IntegrityError, table: str, parent_id: int) -> Exception:
    message = str(e)
    if "FOREIGN KEY" in message:
        return ForeignKeyViolation(table)
    if "UNIQUE" in message:
        return DuplicateRecordError(table, parent_id)
    return e


class Database:
    """
    One SQLite connection plus the typed queries the application needs.

    Opening a Database runs pending migrations and seeds the card deck.
    Each instance owns its connection; concurrent background analyses
    open their own instance instead of sharing one.

    Example:
        >>> with Database(tmp_path / "dreams.db") as db:
        ...     dump = db.create_mind_dump(MindDumpInput(content="hi", character_count=2))
        ...     db.mind_dump_exists(dump.id)
        True
    """

    def __init__(self, path: Path | str, deck: Optional[Sequence[Card]] = None):
        self.path = Path(path)
        if str(path) != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        run_migrations(self.conn)
        self.deck = tuple(deck) if deck is not None else load_deck()
        self.seed_cards(self.deck)

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # Cards

    def seed_cards(self, deck: Iterable[Card]) -> None:
        """Insert deck cards that are missing; existing rows are left alone."""
        with self.conn:
            self.conn.executemany(
                "INSERT OR IGNORE INTO cards (id, name) VALUES (?, ?)",
                [(card.id, card.name) for card in deck],
            )

    def get_card(self, card_id: int) -> Optional[Card]:
        row = self.conn.execute("SELECT name FROM cards WHERE id = ?", (card_id,)).fetchone()
        if row is None:
            return None
        return self._deck_card(row["name"])

    def get_card_by_name(self, name: str) -> Optional[Card]:
        row = self.conn.execute("SELECT name FROM cards WHERE name = ?", (name,)).fetchone()
        if row is None:
            return None
        return self._deck_card(row["name"])

    def list_cards(self) -> list[Card]:
        rows = self.conn.execute("SELECT name FROM cards ORDER BY id").fetchall()
        return [card for card in (self._deck_card(row["name"]) for row in rows) if card]

    def _deck_card(self, name: str) -> Optional[Card]:
        return find_card(self.deck, name)

    # Dreams

    def create_dream(self, data: DreamInput) -> Dream:
        now = _now()
        recorded = (data.date_recorded.isoformat() if data.date_recorded else now)
        with self.conn:
            cursor = self.conn.execute(
                """INSERT INTO dreams (title, content, sleep_quality, date_recorded, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (data.title, data.content, data.sleep_quality, recorded, now, now),
            )
        logger.info("dream_created", dream_id=cursor.lastrowid)
        return self.get_dream(cursor.lastrowid)

    def get_dream(self, dream_id: int) -> Optional[Dream]:
        row = self.conn.execute("SELECT * FROM dreams WHERE id = ?", (dream_id,)).fetchone()
        return Dream(**dict(row)) if row else None

    def list_dreams(self, limit: Optional[int] = None) -> list[Dream]:
        query = "SELECT * FROM dreams ORDER BY date_recorded DESC, id DESC"
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        return [Dream(**dict(row)) for row in self.conn.execute(query, params)]

    def search_dreams(self, query: str) -> list[Dream]:
        pattern = f"%{query}%"
        rows = self.conn.execute(
            "SELECT * FROM dreams WHERE title LIKE ? OR content LIKE ? ORDER BY date_recorded DESC",
            (pattern, pattern),
        )
        return [Dream(**dict(row)) for row in rows]

    def update_dream(self, dream_id: int, data: DreamInput) -> Dream:
        existing = self.get_dream(dream_id)
        if existing is None:
            raise RecordNotFoundError("dreams", dream_id)
        recorded = data.date_recorded.isoformat() if data.date_recorded else existing.date_recorded.isoformat()
        with self.conn:
            self.conn.execute(
                """UPDATE dreams SET title = ?, content = ?, sleep_quality = ?, date_recorded = ?,
                   updated_at = ? WHERE id = ?""",
                (data.title, data.content, data.sleep_quality, recorded, _now(), dream_id),
            )
        return self.get_dream(dream_id)

    def delete_dream(self, dream_id: int) -> bool:
        with self.conn:
            cursor = self.conn.execute("DELETE FROM dreams WHERE id = ?", (dream_id,))
        return cursor.rowcount > 0

    # Bugs

    def create_bug(self, data: BugInput) -> Bug:
        now = _now()
        with self.conn:
            cursor = self.conn.execute(
                """INSERT INTO bugs (title, description, status, notes, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (data.title, data.description, BugStatus.ACTIVE.value, data.notes, now, now),
            )
            self._replace_bug_cards(cursor.lastrowid, data.card_ids)
        return self.get_bug(cursor.lastrowid)

    def _replace_bug_cards(self, bug_id: int, card_ids: Sequence[int]) -> None:
        self.conn.execute("DELETE FROM bug_cards WHERE bug_id = ?", (bug_id,))
        try:
            self.conn.executemany(
                "INSERT INTO bug_cards (bug_id, card_id, position) VALUES (?, ?, ?)",
                [(bug_id, card_id, position) for position, card_id in enumerate(card_ids)],
            )
        except sqlite3.IntegrityError as e:
            raise _translate_integrity_error(e, "bug_cards", bug_id) from e

    def get_bug(self, bug_id: int) -> Optional[Bug]:
        row = self.conn.execute("SELECT * FROM bugs WHERE id = ?", (bug_id,)).fetchone()
        if row is None:
            return None
        card_ids = [
            card_row["card_id"]
            for card_row in self.conn.execute(
                "SELECT card_id FROM bug_cards WHERE bug_id = ? ORDER BY position", (bug_id,)
            )
        ]
        return Bug(**dict(row), card_ids=card_ids)

    def list_bugs(self, status: Optional[BugStatus] = None) -> list[Bug]:
        if status is None:
            rows = self.conn.execute("SELECT id FROM bugs ORDER BY updated_at DESC").fetchall()
        else:
            rows = self.conn.execute(
                "SELECT id FROM bugs WHERE status = ? ORDER BY updated_at DESC", (status.value,)
            ).fetchall()
        return [self.get_bug(row["id"]) for row in rows]

    def update_bug(self, bug_id: int, data: BugInput) -> Bug:
        if self.get_bug(bug_id) is None:
            raise RecordNotFoundError("bugs", bug_id)
        with self.conn:
            self.conn.execute(
                "UPDATE bugs SET title = ?, description = ?, notes = ?, updated_at = ? WHERE id = ?",
                (data.title, data.description, data.notes, _now(), bug_id),
            )
            self._replace_bug_cards(bug_id, data.card_ids)
        return self.get_bug(bug_id)

    def set_bug_status(self, bug_id: int, status: BugStatus) -> Bug:
        """Change a bug's status; resolving stamps `resolved_at`, other states clear it."""
        now = _now()
        resolved_at = now if status == BugStatus.RESOLVED else None
        with self.conn:
            cursor = self.conn.execute(
                "UPDATE bugs SET status = ?, resolved_at = ?, updated_at = ? WHERE id = ?",
                (status.value, resolved_at, now, bug_id),
            )
        if cursor.rowcount == 0:
            raise RecordNotFoundError("bugs", bug_id)
        return self.get_bug(bug_id)

    def delete_bug(self, bug_id: int) -> bool:
        with self.conn:
            cursor = self.conn.execute("DELETE FROM bugs WHERE id = ?", (bug_id,))
        return cursor.rowcount > 0

    # Mind dumps

    def _mind_dump_from_row(self, row: sqlite3.Row) -> MindDump:
        data = dict(row)
        data["mood_tags"] = _json_list(data.get("mood_tags"))
        return MindDump(**data)

    def create_mind_dump(self, data: MindDumpInput) -> MindDump:
        now = _now()
        with self.conn:
            cursor = self.conn.execute(
                """INSERT INTO mind_dumps (title, content, character_count, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (data.title, data.content, data.character_count, now, now),
            )
        logger.info("mind_dump_created", mind_dump_id=cursor.lastrowid)
        return self.get_mind_dump(cursor.lastrowid)

    def get_mind_dump(self, mind_dump_id: int) -> Optional[MindDump]:
        row = self.conn.execute("SELECT * FROM mind_dumps WHERE id = ?", (mind_dump_id,)).fetchone()
        return self._mind_dump_from_row(row) if row else None

    def list_mind_dumps(self, limit: Optional[int] = None) -> list[MindDump]:
        query = "SELECT * FROM mind_dumps ORDER BY created_at DESC, id DESC"
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        return [self._mind_dump_from_row(row) for row in self.conn.execute(query, params)]

    def search_mind_dumps(self, query: str) -> list[MindDump]:
        pattern = f"%{query}%"
        rows = self.conn.execute(
            """SELECT * FROM mind_dumps WHERE content LIKE ? OR title LIKE ?
               ORDER BY created_at DESC""",
            (pattern, pattern),
        )
        return [self._mind_dump_from_row(row) for row in rows]

    def update_mind_dump(self, mind_dump_id: int, data: MindDumpInput) -> MindDump:
        with self.conn:
            cursor = self.conn.execute(
                """UPDATE mind_dumps SET title = ?, content = ?, character_count = ?, updated_at = ?
                   WHERE id = ?""",
                (data.title, data.content, data.character_count, _now(), mind_dump_id),
            )
        if cursor.rowcount == 0:
            raise RecordNotFoundError("mind_dumps", mind_dump_id)
        return self.get_mind_dump(mind_dump_id)

    def delete_mind_dump(self, mind_dump_id: int) -> bool:
        with self.conn:
            cursor = self.conn.execute("DELETE FROM mind_dumps WHERE id = ?", (mind_dump_id,))
        if cursor.rowcount:
            logger.info("mind_dump_deleted", mind_dump_id=mind_dump_id)
        return cursor.rowcount > 0

    def mind_dump_exists(self, mind_dump_id: int) -> bool:
        row = self.conn.execute("SELECT 1 FROM mind_dumps WHERE id = ?", (mind_dump_id,)).fetchone()
        return row is not None

    def update_mind_dump_mood_tags(self, mind_dump_id: int, mood_tags: Sequence[str]) -> None:
        with self.conn:
            cursor = self.conn.execute(
                "UPDATE mind_dumps SET mood_tags = ?, updated_at = ? WHERE id = ?",
                (json.dumps(list(mood_tags)), _now(), mind_dump_id),
            )
        if cursor.rowcount == 0:
            raise RecordNotFoundError("mind_dumps", mind_dump_id)

    # Mind dump analysis

    def create_mind_dump_analysis(self, mind_dump_id: int) -> int:
        """
        Create the (single) analysis row for a mind dump.

        Raises:
            ForeignKeyViolation: If the mind dump no longer exists
            DuplicateRecordError: If the mind dump already has an analysis
        """
        try:
            with self.conn:
                cursor = self.conn.execute(
                    "INSERT INTO mind_dump_analysis (mind_dump_id, created_at) VALUES (?, ?)",
                    (mind_dump_id, _now()),
                )
        except sqlite3.IntegrityError as e:
            raise _translate_integrity_error(e, "mind_dump_analysis", mind_dump_id) from e
        return cursor.lastrowid

    def link_analysis_card(self, analysis_id: int, card_id: int, relevance_note: Optional[str]) -> None:
        try:
            with self.conn:
                self.conn.execute(
                    """INSERT OR REPLACE INTO mind_dump_analysis_cards (analysis_id, card_id, relevance_note)
                       VALUES (?, ?, ?)""",
                    (analysis_id, card_id, relevance_note),
                )
        except sqlite3.IntegrityError as e:
            raise _translate_integrity_error(e, "mind_dump_analysis_cards", analysis_id) from e

    def add_analysis_task(self, analysis_id: int, title: str, description: Optional[str]) -> int:
        try:
            with self.conn:
                cursor = self.conn.execute(
                    """INSERT INTO mind_dump_analysis_tasks (analysis_id, title, description, created_at)
                       VALUES (?, ?, ?, ?)""",
                    (analysis_id, title, description, _now()),
                )
        except sqlite3.IntegrityError as e:
            raise _translate_integrity_error(e, "mind_dump_analysis_tasks", analysis_id) from e
        return cursor.lastrowid

    def set_analysis_blocker_patterns(self, analysis_id: int, patterns: Sequence[str]) -> None:
        with self.conn:
            cursor = self.conn.execute(
                "UPDATE mind_dump_analysis SET blocker_patterns = ? WHERE id = ?",
                (json.dumps(list(patterns)), analysis_id),
            )
        if cursor.rowcount == 0:
            raise RecordNotFoundError("mind_dump_analysis", analysis_id)

    def get_mind_dump_analysis(self, mind_dump_id: int) -> Optional[MindDumpAnalysis]:
        """Analysis of a mind dump with its linked cards and tasks, or None."""
        row = self.conn.execute(
            "SELECT * FROM mind_dump_analysis WHERE mind_dump_id = ?", (mind_dump_id,)
        ).fetchone()
        if row is None:
            return None

        cards = [
            AnalysisCard(card_id=card_row["card_id"], card_name=card_row["name"],
                         relevance_note=card_row["relevance_note"])
            for card_row in self.conn.execute(
                """SELECT ac.card_id, c.name, ac.relevance_note
                   FROM mind_dump_analysis_cards ac JOIN cards c ON c.id = ac.card_id
                   WHERE ac.analysis_id = ? ORDER BY ac.card_id""",
                (row["id"],),
            )
        ]
        tasks = [
            AnalysisTask(id=task_row["id"], title=task_row["title"], description=task_row["description"])
            for task_row in self.conn.execute(
                "SELECT id, title, description FROM mind_dump_analysis_tasks WHERE analysis_id = ? ORDER BY id",
                (row["id"],),
            )
        ]
        return MindDumpAnalysis(
            id=row["id"],
            mind_dump_id=row["mind_dump_id"],
            blocker_patterns=_json_list(row["blocker_patterns"]),
            created_at=row["created_at"],
            cards=cards,
            tasks=tasks,
        )

    # Dream analysis

    def save_dream_analysis(self, dream_id: int, result: DreamAnalysisResult) -> int:
        """
        Store a dream's analysis, replacing any earlier one.

        Replacing an analysis drops its linked cards and creative prompts.

        Raises:
            ForeignKeyViolation: If the dream does not exist
        """
        try:
            with self.conn:
                self.conn.execute("DELETE FROM dream_analyses WHERE dream_id = ?", (dream_id,))
                cursor = self.conn.execute(
                    """INSERT INTO dream_analyses
                       (dream_id, themes_patterns, emotional_analysis, narrative_summary, created_at)
                       VALUES (?, ?, ?, ?, ?)""",
                    (dream_id, result.themes_patterns, result.emotional_analysis,
                     result.narrative_summary, _now()),
                )
        except sqlite3.IntegrityError as e:
            raise _translate_integrity_error(e, "dream_analyses", dream_id) from e
        return cursor.lastrowid

    def link_dream_analysis_card(self, analysis_id: int, card_id: int, relevance_note: Optional[str]) -> None:
        try:
            with self.conn:
                self.conn.execute(
                    """INSERT OR REPLACE INTO dream_analysis_cards (analysis_id, card_id, relevance_note)
                       VALUES (?, ?, ?)""",
                    (analysis_id, card_id, relevance_note),
                )
        except sqlite3.IntegrityError as e:
            raise _translate_integrity_error(e, "dream_analysis_cards", analysis_id) from e

    def get_dream_analysis(self, dream_id: int) -> Optional[DreamAnalysis]:
        row = self.conn.execute(
            "SELECT * FROM dream_analyses WHERE dream_id = ?", (dream_id,)
        ).fetchone()
        if row is None:
            return None
        cards = [
            AnalysisCard(card_id=card_row["card_id"], card_name=card_row["name"],
                         relevance_note=card_row["relevance_note"])
            for card_row in self.conn.execute(
                """SELECT dc.card_id, c.name, dc.relevance_note
                   FROM dream_analysis_cards dc JOIN cards c ON c.id = dc.card_id
                   WHERE dc.analysis_id = ? ORDER BY dc.card_id""",
                (row["id"],),
            )
        ]
        return DreamAnalysis(**dict(row), cards=cards)

    # Creative prompts

    def save_creative_prompts(self, dream_analysis_id: int, result: CreativePromptsResult) -> int:
        try:
            with self.conn:
                self.conn.execute(
                    "DELETE FROM dream_creative_prompts WHERE dream_analysis_id = ?", (dream_analysis_id,)
                )
                cursor = self.conn.execute(
                    """INSERT INTO dream_creative_prompts
                       (dream_analysis_id, image_prompts, music_prompts, story_prompts, created_at)
                       VALUES (?, ?, ?, ?, ?)""",
                    (dream_analysis_id, json.dumps(result.image_prompts), json.dumps(result.music_prompts),
                     json.dumps(result.story_prompts), _now()),
                )
        except sqlite3.IntegrityError as e:
            raise _translate_integrity_error(e, "dream_creative_prompts", dream_analysis_id) from e
        return cursor.lastrowid

    def get_creative_prompts(self, dream_analysis_id: int) -> Optional[CreativePrompts]:
        row = self.conn.execute(
            "SELECT * FROM dream_creative_prompts WHERE dream_analysis_id = ?", (dream_analysis_id,)
        ).fetchone()
        if row is None:
            return None
        data = dict(row)
        for key in ("image_prompts", "music_prompts", "story_prompts"):
            data[key] = _json_list(data[key])
        return CreativePrompts(**data)

    # Maintenance

    def backup(self, destination: Path | str) -> Path:
        """
        Copy the live database to `destination` using SQLite's online backup.

        Returns:
            Path of the written backup
        """
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        target = sqlite3.connect(str(destination))
        try:
            self.conn.backup(target)
        finally:
            target.close()
        logger.info("database_backed_up", source=str(self.path), destination=str(destination))
        return destination
