"""Integration tests for the SQLite record store."""

import sqlite3

import pytest

from limnl.models.records import BugInput, BugStatus, DreamInput, MindDumpInput
from limnl.models.results import CreativePromptsResult, DreamAnalysisResult, SymbolCard
from limnl.services.exceptions import (
    DuplicateRecordError,
    ForeignKeyViolation,
    RecordNotFoundError,
)
from limnl.services.migrations import MIGRATIONS, get_schema_version, run_migrations
from limnl.services.record_store import Database


def dump_input(content="Too many tabs open in my head", title=None):
    return MindDumpInput(title=title, content=content, character_count=len(content))


class TestMigrations:
    """Test schema migrations."""

    def test_fresh_database_is_fully_migrated(self, db):
        assert get_schema_version(db.conn) == len(MIGRATIONS)

    def test_migrations_are_idempotent(self, tmp_path):
        """Test reopening a database applies nothing twice."""
        path = tmp_path / "journal.db"
        Database(path).close()

        with Database(path) as db:
            versions = [row[0] for row in db.conn.execute("SELECT version FROM schema_version")]

        assert versions == list(range(1, len(MIGRATIONS) + 1))

    def test_partially_upgraded_schema(self, tmp_path):
        """Test a hand-added column does not break the upgrade."""
        conn = sqlite3.connect(str(tmp_path / "old.db"))
        conn.execute("CREATE TABLE schema_version (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
        for statement in MIGRATIONS[0]:
            conn.execute(statement)
        conn.execute("INSERT INTO schema_version VALUES (1, '2024-01-01T00:00:00+00:00')")
        conn.execute("ALTER TABLE mind_dumps ADD COLUMN mood_tags TEXT")
        conn.commit()

        assert run_migrations(conn) == len(MIGRATIONS)
        columns = [row[1] for row in conn.execute("PRAGMA table_info(mind_dump_analysis)")]
        assert "blocker_patterns" in columns
        conn.close()


class TestCards:
    """Test the seeded card deck."""

    def test_deck_is_seeded(self, db):
        cards = db.list_cards()

        assert len(cards) == 36
        assert cards[0].name == "The Rider"
        assert cards[-1].name == "The Cross"

    def test_lookup_by_name(self, db):
        assert db.get_card_by_name("The Key").id == 33
        assert db.get_card_by_name("the key") is None

    def test_seeding_twice_is_harmless(self, db, deck):
        db.seed_cards(deck)

        assert len(db.list_cards()) == 36

    def test_lookup_by_id(self, db):
        assert db.get_card(1).name == "The Rider"
        assert db.get_card(33).name == "The Key"
        assert db.get_card(99) is None


class TestDreams:
    """Test dream CRUD."""

    def test_create_and_get(self, db):
        dream = db.create_dream(DreamInput(title="Flood", content="Water everywhere", sleep_quality=2))

        fetched = db.get_dream(dream.id)
        assert fetched.title == "Flood"
        assert fetched.sleep_quality == 2

    def test_search(self, db):
        db.create_dream(DreamInput(title="Flood", content="Water everywhere"))
        db.create_dream(DreamInput(title="Desert", content="Sand and sun"))

        assert [dream.title for dream in db.search_dreams("water")] == ["Flood"]

    def test_update_missing_dream(self, db):
        with pytest.raises(RecordNotFoundError):
            db.update_dream(999, DreamInput(title="x", content="y"))

    def test_delete(self, db):
        dream = db.create_dream(DreamInput(title="Flood", content="Water"))

        assert db.delete_dream(dream.id) is True
        assert db.delete_dream(dream.id) is False
        assert db.get_dream(dream.id) is None


class TestBugs:
    """Test personal issue tracking."""

    def test_create_with_cards(self, db):
        bug = db.create_bug(BugInput(title="Procrastination", card_ids=[21, 3]))

        assert bug.status == BugStatus.ACTIVE
        assert bug.card_ids == [21, 3]

    def test_unknown_card_rejected(self, db):
        with pytest.raises(ForeignKeyViolation):
            db.create_bug(BugInput(title="Procrastination", card_ids=[99]))

    def test_resolve_and_reopen(self, db):
        bug = db.create_bug(BugInput(title="Procrastination"))

        resolved = db.set_bug_status(bug.id, BugStatus.RESOLVED)
        assert resolved.resolved_at is not None

        reopened = db.set_bug_status(bug.id, BugStatus.ACTIVE)
        assert reopened.resolved_at is None

    def test_list_by_status(self, db):
        first = db.create_bug(BugInput(title="One"))
        db.create_bug(BugInput(title="Two"))
        db.set_bug_status(first.id, BugStatus.ARCHIVED)

        assert [bug.title for bug in db.list_bugs(BugStatus.ARCHIVED)] == ["One"]
        assert len(db.list_bugs()) == 2

    def test_update_replaces_fields_and_cards(self, db):
        bug = db.create_bug(BugInput(title="Procrastination", card_ids=[21, 3]))

        updated = db.update_bug(bug.id, BugInput(title="Avoidance", notes="Mostly email", card_ids=[33]))

        assert updated.title == "Avoidance"
        assert updated.notes == "Mostly email"
        assert updated.card_ids == [33]
        assert db.get_bug(bug.id).card_ids == [33]

    def test_update_missing_bug(self, db):
        with pytest.raises(RecordNotFoundError):
            db.update_bug(999, BugInput(title="x"))


class TestMindDumps:
    """Test mind dump storage and analysis rows."""

    def test_create_and_get(self, db):
        mind_dump = db.create_mind_dump(dump_input(title="Monday"))

        fetched = db.get_mind_dump(mind_dump.id)
        assert fetched.title == "Monday"
        assert fetched.mood_tags == []
        assert db.mind_dump_exists(mind_dump.id)

    def test_update(self, db):
        mind_dump = db.create_mind_dump(dump_input(title="Monday"))

        updated = db.update_mind_dump(mind_dump.id, dump_input("Only two tabs now", title="Tuesday"))

        assert updated.title == "Tuesday"
        assert updated.content == "Only two tabs now"
        assert updated.character_count == len("Only two tabs now")
        assert db.get_mind_dump(mind_dump.id).content == "Only two tabs now"

    def test_update_missing_dump(self, db):
        with pytest.raises(RecordNotFoundError):
            db.update_mind_dump(42, dump_input())

    def test_mood_tags_round_trip(self, db):
        mind_dump = db.create_mind_dump(dump_input())

        db.update_mind_dump_mood_tags(mind_dump.id, ["anxious", "hopeful"])

        assert db.get_mind_dump(mind_dump.id).mood_tags == ["anxious", "hopeful"]

    def test_mood_tags_for_missing_dump(self, db):
        with pytest.raises(RecordNotFoundError):
            db.update_mind_dump_mood_tags(42, ["calm"])

    def test_analysis_for_missing_dump(self, db):
        """Test the parent foreign key is enforced."""
        with pytest.raises(ForeignKeyViolation):
            db.create_mind_dump_analysis(42)

    def test_one_analysis_per_dump(self, db):
        mind_dump = db.create_mind_dump(dump_input())
        db.create_mind_dump_analysis(mind_dump.id)

        with pytest.raises(DuplicateRecordError):
            db.create_mind_dump_analysis(mind_dump.id)

    def test_analysis_with_children(self, db):
        mind_dump = db.create_mind_dump(dump_input())
        analysis_id = db.create_mind_dump_analysis(mind_dump.id)
        db.link_analysis_card(analysis_id, 33, "A way out")
        db.add_analysis_task(analysis_id, "Close ten tabs", None)
        db.set_analysis_blocker_patterns(analysis_id, ["choice_overload_paralysis"])

        analysis = db.get_mind_dump_analysis(mind_dump.id)

        assert [card.card_name for card in analysis.cards] == ["The Key"]
        assert analysis.tasks[0].title == "Close ten tabs"
        assert analysis.blocker_patterns == ["choice_overload_paralysis"]

    def test_delete_cascades_to_analysis(self, db):
        mind_dump = db.create_mind_dump(dump_input())
        analysis_id = db.create_mind_dump_analysis(mind_dump.id)
        db.add_analysis_task(analysis_id, "Close ten tabs", None)

        assert db.delete_mind_dump(mind_dump.id)

        assert db.get_mind_dump_analysis(mind_dump.id) is None
        remaining = db.conn.execute("SELECT COUNT(*) FROM mind_dump_analysis_tasks").fetchone()[0]
        assert remaining == 0

    def test_search(self, db):
        db.create_mind_dump(dump_input("Budget spreadsheet is overdue"))
        db.create_mind_dump(dump_input("Call grandma"))

        assert [d.content for d in db.search_mind_dumps("grandma")] == ["Call grandma"]


class TestDreamAnalysisStorage:
    """Test dream analysis and creative prompt rows."""

    def _analysis(self, summary="A voyage"):
        return DreamAnalysisResult(
            themes_patterns="Water",
            emotional_analysis="Calm",
            narrative_summary=summary,
            symbol_cards=[SymbolCard(card_name="The Ship", relevance_note="Voyage")],
        )

    def test_new_analysis_replaces_old(self, db):
        dream = db.create_dream(DreamInput(title="Voyage", content="I sailed"))
        first_id = db.save_dream_analysis(dream.id, self._analysis("first"))
        db.link_dream_analysis_card(first_id, 3, "Voyage")

        db.save_dream_analysis(dream.id, self._analysis("second"))

        analysis = db.get_dream_analysis(dream.id)
        assert analysis.narrative_summary == "second"
        assert analysis.cards == []

    def test_creative_prompts(self, db):
        dream = db.create_dream(DreamInput(title="Voyage", content="I sailed"))
        analysis_id = db.save_dream_analysis(dream.id, self._analysis())
        prompts = CreativePromptsResult(
            image_prompts=["a", "b", "c"],
            music_prompts=["d", "e", "f"],
            story_prompts=["g", "h", "i"],
        )

        db.save_creative_prompts(analysis_id, prompts)

        stored = db.get_creative_prompts(analysis_id)
        assert stored.image_prompts == ["a", "b", "c"]

    def test_analysis_for_missing_dream(self, db):
        with pytest.raises(ForeignKeyViolation):
            db.save_dream_analysis(404, self._analysis())


class TestBackup:

    def test_backup_copies_rows(self, db, tmp_path):
        db.create_dream(DreamInput(title="Flood", content="Water"))

        destination = db.backup(tmp_path / "backups" / "copy.db")

        with Database(destination) as copy:
            assert [dream.title for dream in copy.list_dreams()] == ["Flood"]
