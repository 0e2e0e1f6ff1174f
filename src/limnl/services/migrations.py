"""Versioned schema migrations for the journal database."""

import sqlite3
from datetime import datetime, timezone

from limnl.utils.logging import get_logger


logger = get_logger(__name__)

# Each migration is a tuple of statements; append new migrations at the end.
MIGRATIONS: tuple[tuple[str, ...], ...] = (
    # 1: initial schema
    (
        """CREATE TABLE IF NOT EXISTS dreams (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            content TEXT NOT NULL,
            sleep_quality INTEGER,
            date_recorded TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )""",
        """CREATE TABLE IF NOT EXISTS bugs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            status TEXT NOT NULL DEFAULT 'active',
            notes TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            resolved_at TEXT
        )""",
        """CREATE TABLE IF NOT EXISTS cards (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL UNIQUE
        )""",
        """CREATE TABLE IF NOT EXISTS bug_cards (
            bug_id INTEGER NOT NULL REFERENCES bugs(id) ON DELETE CASCADE,
            card_id INTEGER NOT NULL REFERENCES cards(id),
            position INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (bug_id, card_id)
        )""",
        """CREATE TABLE IF NOT EXISTS mind_dumps (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT,
            content TEXT NOT NULL,
            character_count INTEGER NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )""",
        """CREATE TABLE IF NOT EXISTS dream_analyses (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            dream_id INTEGER NOT NULL UNIQUE REFERENCES dreams(id) ON DELETE CASCADE,
            themes_patterns TEXT NOT NULL,
            emotional_analysis TEXT NOT NULL,
            narrative_summary TEXT NOT NULL,
            created_at TEXT NOT NULL
        )""",
        """CREATE TABLE IF NOT EXISTS dream_analysis_cards (
            analysis_id INTEGER NOT NULL REFERENCES dream_analyses(id) ON DELETE CASCADE,
            card_id INTEGER NOT NULL REFERENCES cards(id),
            relevance_note TEXT,
            PRIMARY KEY (analysis_id, card_id)
        )""",
        """CREATE TABLE IF NOT EXISTS dream_creative_prompts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            dream_analysis_id INTEGER NOT NULL UNIQUE
                REFERENCES dream_analyses(id) ON DELETE CASCADE,
            image_prompts TEXT NOT NULL,
            music_prompts TEXT NOT NULL,
            story_prompts TEXT NOT NULL,
            created_at TEXT NOT NULL
        )""",
    ),
    # 2: mind dump analysis
    (
        "ALTER TABLE mind_dumps ADD COLUMN mood_tags TEXT",
        """CREATE TABLE IF NOT EXISTS mind_dump_analysis (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            mind_dump_id INTEGER NOT NULL UNIQUE REFERENCES mind_dumps(id) ON DELETE CASCADE,
            created_at TEXT NOT NULL
        )""",
        """CREATE TABLE IF NOT EXISTS mind_dump_analysis_cards (
            analysis_id INTEGER NOT NULL REFERENCES mind_dump_analysis(id) ON DELETE CASCADE,
            card_id INTEGER NOT NULL REFERENCES cards(id),
            relevance_note TEXT,
            PRIMARY KEY (analysis_id, card_id)
        )""",
        """CREATE TABLE IF NOT EXISTS mind_dump_analysis_tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            analysis_id INTEGER NOT NULL REFERENCES mind_dump_analysis(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            description TEXT,
            created_at TEXT NOT NULL
        )""",
    ),
    # 3: blocker patterns on mind dump analyses
    (
        "ALTER TABLE mind_dump_analysis ADD COLUMN blocker_patterns TEXT",
    ),
)

_TOLERATED_ERRORS = ("duplicate column", "already exists")


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Return the newest applied migration, or 0 for a fresh database."""
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] or 0


def run_migrations(conn: sqlite3.Connection) -> int:
    """
    Apply every migration newer than the recorded schema version.

    Statements that fail because a column or table already exists are
    skipped, so databases whose schema was changed by hand still upgrade.
    Any other error aborts the migration and is raised.

    Args:
        conn: Open database connection

    Returns:
        Schema version after migrating
    """
    conn.execute(
        """CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER PRIMARY KEY,
            applied_at TEXT NOT NULL
        )"""
    )
    current = get_schema_version(conn)

    for version, statements in enumerate(MIGRATIONS, start=1):
        if version <= current:
            continue

        logger.info("migration_applying", version=version, total=len(MIGRATIONS))
        with conn:
            for statement in statements:
                try:
                    conn.execute(statement)
                except sqlite3.OperationalError as e:
                    message = str(e).lower()
                    if not any(marker in message for marker in _TOLERATED_ERRORS):
                        logger.error("migration_failed", version=version, error=str(e))
                        raise
                    logger.warning("migration_statement_skipped", version=version, error=str(e))
            conn.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (version, datetime.now(timezone.utc).isoformat()),
            )
        current = version

    logger.debug("schema_up_to_date", version=current)
    return current
