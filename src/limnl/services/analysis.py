"""Background mind dump analysis.

Saving a mind dump returns as soon as the row exists; the LLM analysis
runs afterwards as a detached asyncio task that fans the decoded result
out into dependent rows (analysis, card links, tasks, mood tags and
blocker patterns). The parent may be deleted at any point while this
happens, so existence is re-checked before writing, and every failure
ends in a log event rather than an exception: nobody is left waiting
for the result.
"""

import asyncio
import sqlite3
from functools import partial
from typing import Any, Callable, Optional, Sequence

from limnl.llm.client import generate_mind_dump_analysis
from limnl.llm.prompts import BLOCKER_PATTERN_IDS
from limnl.models.analysis import AnalysisOutcome, AnalysisState
from limnl.models.config import LLMConfig, ProviderKind
from limnl.models.records import Card, MindDump, MindDumpInput
from limnl.models.results import MindDumpAnalysisResult
from limnl.services.deck import find_card, load_deck
from limnl.services.exceptions import (
    DuplicateRecordError,
    ForeignKeyViolation,
    RecordNotFoundError,
)
from limnl.services.record_store import Database
from limnl.utils.logging import get_logger


logger = get_logger(__name__)

StoreFactory = Callable[[], Database]

# Failures of a single child write; the remaining writes still run.
_CHILD_WRITE_ERRORS = (ForeignKeyViolation, RecordNotFoundError, sqlite3.Error)


async def _in_executor(func: Callable[..., Any], *args: Any) -> Any:
    """Run a blocking store call on the loop's default worker pool."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args))


class MindDumpAnalyzer:
    """
    Schedules and runs background analyses for new mind dumps.

    Each run opens its own store through `store_factory` and closes it
    when done. Spawned tasks are kept in a set until they finish so they
    are not garbage collected mid-run; `wait_for_pending()` lets
    short-lived processes (the CLI) drain them before exiting.

    Example:
        >>> analyzer = MindDumpAnalyzer(lambda: Database(db_path))
        >>> dump = await analyzer.create_mind_dump(db, MindDumpInput(...), config)
        >>> await analyzer.wait_for_pending()
    """

    def __init__(self, store_factory: StoreFactory, deck: Optional[Sequence[Card]] = None):
        self._store_factory = store_factory
        self._deck = tuple(deck) if deck is not None else load_deck()
        self._pending: set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def create_mind_dump(
        self,
        store: Database,
        data: MindDumpInput,
        config: LLMConfig,
    ) -> MindDump:
        """
        Persist a mind dump and schedule its analysis.

        Returns once the row is written; the analysis is not awaited.

        Args:
            store: Caller's store, used only for the insert
            data: Validated mind dump input
            config: Provider configuration for the analysis

        Returns:
            The stored mind dump
        """
        mind_dump = await _in_executor(store.create_mind_dump, data)
        self.trigger(mind_dump.id, mind_dump.content, config)
        return mind_dump

    def trigger(self, mind_dump_id: int, content: str, config: LLMConfig) -> AnalysisState:
        """
        Schedule analysis of a stored mind dump without waiting for it.

        Must be called from a running event loop.

        Returns:
            SKIPPED when the provider is disabled (nothing is scheduled),
            CREATED otherwise
        """
        if config.provider == ProviderKind.DISABLED:
            logger.info("mind_dump_analysis_skipped", mind_dump_id=mind_dump_id, reason="llm_disabled")
            return AnalysisState.SKIPPED

        task = asyncio.create_task(
            self.run(mind_dump_id, content, config),
            name=f"mind-dump-analysis-{mind_dump_id}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        logger.info("mind_dump_analysis_scheduled", mind_dump_id=mind_dump_id, provider=config.provider.value)
        return AnalysisState.CREATED

    async def wait_for_pending(self) -> None:
        """Wait until every scheduled analysis has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def run(self, mind_dump_id: int, content: str, config: LLMConfig) -> AnalysisOutcome:
        """
        Analyze a mind dump and persist the result.

        Never raises; the returned outcome (also logged) records how far
        the run got.
        """
        outcome = AnalysisOutcome(mind_dump_id=mind_dump_id, state=AnalysisState.ANALYZING)
        logger.info("mind_dump_analysis_started", mind_dump_id=mind_dump_id)

        try:
            result = await generate_mind_dump_analysis(content, config, deck=self._deck)
        except Exception as e:
            outcome.state = AnalysisState.FAILED
            outcome.error_message = str(e)
            logger.error(
                "mind_dump_analysis_failed",
                mind_dump_id=mind_dump_id,
                stage="llm",
                error=str(e),
                error_type=type(e).__name__,
            )
            return outcome

        store: Optional[Database] = None
        try:
            store = await _in_executor(self._store_factory)
            await self._persist(store, result, outcome)
        except Exception as e:
            outcome.state = AnalysisState.FAILED
            outcome.error_message = str(e)
            logger.error(
                "mind_dump_analysis_failed",
                mind_dump_id=mind_dump_id,
                stage="persist",
                error=str(e),
                error_type=type(e).__name__,
            )
        finally:
            if store is not None:
                await _in_executor(store.close)

        logger.info("mind_dump_analysis_finished", **outcome.model_dump(mode="json"))
        return outcome

    async def _persist(
        self,
        store: Database,
        result: MindDumpAnalysisResult,
        outcome: AnalysisOutcome,
    ) -> None:
        mind_dump_id = outcome.mind_dump_id

        if not await _in_executor(store.mind_dump_exists, mind_dump_id):
            self._abandon(outcome, "mind dump deleted before analysis completed")
            return

        try:
            analysis_id = await _in_executor(store.create_mind_dump_analysis, mind_dump_id)
        except ForeignKeyViolation:
            self._abandon(outcome, "mind dump deleted while creating analysis")
            return
        except DuplicateRecordError as e:
            outcome.state = AnalysisState.FAILED
            outcome.error_message = str(e)
            logger.error("mind_dump_analysis_duplicate", mind_dump_id=mind_dump_id, error=str(e))
            return
        outcome.analysis_id = analysis_id

        for suggestion in result.relevant_cards:
            card = find_card(self._deck, suggestion.card_name)
            if card is None:
                outcome.cards_skipped += 1
                logger.warning(
                    "analysis_card_not_found",
                    mind_dump_id=mind_dump_id,
                    card_name=suggestion.card_name,
                )
                continue
            try:
                await _in_executor(store.link_analysis_card, analysis_id, card.id, suggestion.relevance_note)
                outcome.cards_linked += 1
            except _CHILD_WRITE_ERRORS as e:
                outcome.cards_skipped += 1
                logger.warning(
                    "analysis_card_link_failed",
                    mind_dump_id=mind_dump_id,
                    card_name=card.name,
                    error=str(e),
                )

        for task in result.tasks:
            try:
                await _in_executor(store.add_analysis_task, analysis_id, task.title, task.description)
                outcome.tasks_created += 1
            except _CHILD_WRITE_ERRORS as e:
                outcome.tasks_failed += 1
                logger.warning(
                    "analysis_task_insert_failed",
                    mind_dump_id=mind_dump_id,
                    task_title=task.title,
                    error=str(e),
                )

        mood_tags_failed = False
        if result.mood_tags:
            if await _in_executor(store.mind_dump_exists, mind_dump_id):
                try:
                    await _in_executor(store.update_mind_dump_mood_tags, mind_dump_id, result.mood_tags)
                    outcome.mood_tags_saved = True
                except _CHILD_WRITE_ERRORS as e:
                    mood_tags_failed = True
                    logger.warning("mood_tags_update_failed", mind_dump_id=mind_dump_id, error=str(e))
            else:
                mood_tags_failed = True
                logger.warning("mood_tags_skipped", mind_dump_id=mind_dump_id, reason="mind_dump_deleted")

        patterns = [pattern for pattern in result.blocker_patterns if pattern in BLOCKER_PATTERN_IDS]
        dropped = [pattern for pattern in result.blocker_patterns if pattern not in BLOCKER_PATTERN_IDS]
        if dropped:
            logger.warning("blocker_patterns_unknown", mind_dump_id=mind_dump_id, patterns=dropped)

        blocker_patterns_failed = False
        if patterns:
            try:
                await _in_executor(store.set_analysis_blocker_patterns, analysis_id, patterns)
                outcome.blocker_patterns_saved = True
            except _CHILD_WRITE_ERRORS as e:
                blocker_patterns_failed = True
                logger.warning("blocker_patterns_update_failed", mind_dump_id=mind_dump_id, error=str(e))

        if outcome.cards_skipped or outcome.tasks_failed or mood_tags_failed or blocker_patterns_failed:
            outcome.state = AnalysisState.PARTIAL_FAILURE
        else:
            outcome.state = AnalysisState.LINKED

    def _abandon(self, outcome: AnalysisOutcome, reason: str) -> None:
        outcome.state = AnalysisState.ABANDONED
        outcome.error_message = reason
        logger.warning("mind_dump_analysis_abandoned", mind_dump_id=outcome.mind_dump_id, reason=reason)
