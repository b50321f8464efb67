"""SessionOrchestrator — drives a FlowManager and keeps its draft persisted.

The orchestrator owns the single mutable reference to the session (via
:class:`~questionnaire_flow.flow.FlowManager`) and coordinates it with three
collaborators:

  - a :class:`KeyValueStore` holding the draft under a namespaced key
  - a :class:`ProfileSink` receiving the finalized output record
  - an optional :class:`RemoteSync` for best-effort upstream copies

Lifecycle (``status``)::

    new ──start()──► awaiting_decision ──resume()/restart()──► in_progress
     └──start() (no draft)─────────────────────────────────────► in_progress
    in_progress ──next() reaches the end──► completed_pending ──► finalized
                                        (sink rejected: stays pending,
                                         retried by on_foreground())

Persistence rules:

  - Every answer (re)starts a trailing debounce timer; when it fires, the
    draft built from the *current* answers is written.  Writes are
    serialized, so the last answer before the window closes is what lands.
  - Completion and restart cancel a pending timer.
  - Remote sync runs on a second, independent timer started only after a
    successful local write, with exponential-backoff retries.  Its failures
    are logged and dropped.
  - I/O errors never propagate: read failures degrade to a fresh session,
    write failures are retried on the next cycle or on ``on_foreground()``.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from questionnaire_flow.catalog import QuestionCatalog
from questionnaire_flow.constants import (
    DRAFT_DEBOUNCE_SECONDS,
    DRAFT_STORAGE_KEY,
    SYNC_DEBOUNCE_SECONDS,
    SYNC_MAX_ATTEMPTS,
    SYNC_RETRY_MAX_SECONDS,
    SYNC_RETRY_MIN_SECONDS,
)
from questionnaire_flow.drafts import DraftStore, build_snapshot
from questionnaire_flow.errors import (
    FinalizationError,
    FlowStateError,
    PersistenceError,
    SyncError,
)
from questionnaire_flow.flow import FlowManager
from questionnaire_flow.interfaces import KeyValueStore, ProfileSink, RemoteSync
from questionnaire_flow.models.feedback import Feedback
from questionnaire_flow.models.session import DraftSnapshot, OutputRecord

logger = logging.getLogger(__name__)


class SessionStatus(str, enum.Enum):
    """Lifecycle status of an orchestrated questionnaire session."""

    NEW = "new"
    AWAITING_DECISION = "awaiting_decision"
    IN_PROGRESS = "in_progress"
    COMPLETED_PENDING = "completed_pending"
    FINALIZED = "finalized"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionOrchestrator:
    """Coordinates one user's questionnaire session with its storage.

    Args:
        catalog: loaded question catalog
        store: shared key-value store for the draft
        profile_sink: receives the output record on completion
        remote_sync: optional best-effort upstream sync
        user_id: owner of the session; remote sync is skipped without one
        draft_key: namespaced key for the draft
        draft_debounce: trailing window for local draft writes (seconds)
        sync_debounce: trailing window for remote sync (seconds)
        sync_attempts: attempts per remote sync before giving up
        sync_retry_min / sync_retry_max: exponential backoff bounds (seconds)
        clock: returns the current time; stamps drafts and output records
    """

    def __init__(
        self,
        catalog: QuestionCatalog,
        store: KeyValueStore,
        profile_sink: ProfileSink,
        *,
        remote_sync: RemoteSync | None = None,
        user_id: str | None = None,
        draft_key: str = DRAFT_STORAGE_KEY,
        draft_debounce: float = DRAFT_DEBOUNCE_SECONDS,
        sync_debounce: float = SYNC_DEBOUNCE_SECONDS,
        sync_attempts: int = SYNC_MAX_ATTEMPTS,
        sync_retry_min: float = SYNC_RETRY_MIN_SECONDS,
        sync_retry_max: float = SYNC_RETRY_MAX_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._catalog = catalog
        self._flow = FlowManager(catalog)
        self._drafts = DraftStore(store, draft_key)
        self._sink = profile_sink
        self._sync = remote_sync
        self._user_id = user_id
        self._draft_debounce = draft_debounce
        self._sync_debounce = sync_debounce
        self._sync_attempts = sync_attempts
        self._sync_retry_min = sync_retry_min
        self._sync_retry_max = sync_retry_max
        self._clock = clock

        self._status = SessionStatus.NEW
        self._pending_draft: DraftSnapshot | None = None
        self._record: OutputRecord | None = None

        # Debounce timer for the next draft write (sleeping phase only).
        self._save_task: asyncio.Task | None = None
        # Writes whose timer already fired; awaited by close().
        self._writes: set[asyncio.Task] = set()
        self._sync_task: asyncio.Task | None = None
        self._write_lock = asyncio.Lock()

        # True while the persisted draft lags behind the in-memory answers.
        self._draft_dirty = False
        # True when a finalized session's draft could not be removed.
        self._clear_pending = False

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def flow(self) -> FlowManager:
        return self._flow

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def pending_draft(self) -> DraftSnapshot | None:
        """The stored draft awaiting a resume/restart decision."""
        return self._pending_draft

    @property
    def output_record(self) -> OutputRecord | None:
        """The record accepted by the profile sink, once finalized."""
        return self._record

    def _require(self, *allowed: SessionStatus) -> None:
        if self._status not in allowed:
            names = ", ".join(s.value for s in allowed)
            raise FlowStateError(
                f"Operation requires session status {names}; current status is "
                f"{self._status.value}"
            )

    # ==================================================================
    # Session start / resume / restart
    # ==================================================================

    async def start(self) -> DraftSnapshot | None:
        """Look for a stored draft without applying it.

        Returns the draft when one with at least one answer exists; the
        caller must then choose :meth:`resume` or :meth:`restart`.  Returns
        None (and the session is ready for answers) otherwise, including
        when the draft cannot be read or is corrupt.
        """
        self._require(SessionStatus.NEW)
        try:
            draft = await self._drafts.load()
        except PersistenceError as exc:
            logger.warning(
                "Could not read draft %s, starting a fresh session: %s",
                self._drafts.key, exc,
            )
            draft = None

        if draft is None or not draft.answers:
            self._status = SessionStatus.IN_PROGRESS
            return None

        self._pending_draft = draft
        self._status = SessionStatus.AWAITING_DECISION
        logger.info(
            "Found draft %s with %d answers (last updated %s)",
            self._drafts.key, draft.total_answered, draft.last_updated.isoformat(),
        )
        return draft

    async def resume(self) -> None:
        """Replay the pending draft into a fresh flow.

        A draft whose answers already cover the whole schedule goes straight
        to finalization.
        """
        self._require(SessionStatus.AWAITING_DECISION)
        draft = self._pending_draft
        self._pending_draft = None
        self._flow = FlowManager.restore(self._catalog, draft.answers)
        self._status = SessionStatus.IN_PROGRESS
        progress = self._flow.get_progress()
        logger.info(
            "Resumed draft %s: %d answers, at question %d/%d",
            self._drafts.key,
            len(self._flow.answers),
            progress.current,
            progress.total,
        )
        if self._flow.is_completed():
            await self._finalize()

    async def restart(self) -> None:
        """Discard any stored draft and start over from the essential questions."""
        self._require(
            SessionStatus.NEW,
            SessionStatus.AWAITING_DECISION,
            SessionStatus.IN_PROGRESS,
            SessionStatus.COMPLETED_PENDING,
            SessionStatus.FINALIZED,
        )
        self._cancel_save()
        self._cancel_sync()
        await self._drain_writes()
        self._pending_draft = None
        self._record = None
        self._draft_dirty = False
        await self._clear_draft()
        self._clear_pending = False
        self._flow.reset()
        self._status = SessionStatus.IN_PROGRESS

    # ==================================================================
    # Flow operations
    # ==================================================================

    async def answer(self, question_id: str, value: Any) -> Feedback:
        """Record an answer and schedule a debounced draft write.

        An answer that deactivates every remaining question finalizes the
        session.

        Raises:
            ValidationError: for an unknown/unscheduled question, an unknown
                or duplicate option, or a value of the wrong shape.  Nothing
                is recorded or scheduled in that case.
        """
        self._require(SessionStatus.IN_PROGRESS)
        feedback = self._flow.answer_question(question_id, value)
        self._schedule_save()
        if self._flow.is_completed():
            await self._finalize()
        return feedback

    async def next(self) -> bool:
        """Advance; finalizes when the end of the schedule is reached.

        Returns whether a question remains to be shown.
        """
        self._require(SessionStatus.IN_PROGRESS)
        has_next = self._flow.next_question()
        if self._flow.is_completed():
            await self._finalize()
        return has_next

    async def previous(self) -> bool:
        """Move back one question; leaves the completed-pending state if needed."""
        self._require(SessionStatus.IN_PROGRESS, SessionStatus.COMPLETED_PENDING)
        moved = self._flow.previous_question()
        if moved and self._status is SessionStatus.COMPLETED_PENDING:
            self._status = SessionStatus.IN_PROGRESS
        return moved

    # ==================================================================
    # Deferred work
    # ==================================================================

    async def flush(self) -> None:
        """Write the draft now instead of waiting for the debounce timer."""
        if self._save_task is not None:
            self._cancel_save()
            await self._write_draft()
        elif self._draft_dirty and self._status is SessionStatus.IN_PROGRESS:
            await self._write_draft()
        await self._drain_writes()

    async def on_foreground(self) -> None:
        """Retry work deferred by earlier I/O failures.

        Pending finalization is attempted again; otherwise a failed draft
        write or a failed draft removal is retried.
        """
        if self._status is SessionStatus.COMPLETED_PENDING:
            await self._finalize()
        elif self._status is SessionStatus.IN_PROGRESS:
            if self._draft_dirty and self._save_task is None:
                await self._write_draft()
        elif self._status is SessionStatus.FINALIZED and self._clear_pending:
            await self._clear_draft()

    async def close(self, *, wait_for_sync: bool = True) -> None:
        """Flush the draft and stop the background timers.

        The outstanding remote sync is cancelled either way; with
        ``wait_for_sync=False`` close returns without waiting for it to
        unwind.
        """
        if self._status is SessionStatus.IN_PROGRESS:
            await self.flush()
        self._cancel_save()
        await self._drain_writes()
        task = self._sync_task
        self._cancel_sync()
        if task is not None and wait_for_sync:
            await asyncio.gather(task, return_exceptions=True)

    # ==================================================================
    # Completion
    # ==================================================================

    async def _finalize(self) -> OutputRecord | None:
        """Hand the output record to the profile sink, then remove the draft.

        If the sink rejects the record the draft is written (not removed) so
        the session stays resumable, and the status stays
        ``completed_pending`` until :meth:`on_foreground` succeeds.
        On success any pending remote sync of the draft is dropped.
        """
        self._cancel_save()
        await self._drain_writes()
        self._status = SessionStatus.COMPLETED_PENDING
        record = self._flow.to_output_record(completed_at=self._clock())

        try:
            await self._sink.save_profile(self._user_id, record)
        except FinalizationError as exc:
            logger.error(
                "Finalization failed for user %s; keeping draft %s: %s",
                self._user_id, self._drafts.key, exc,
            )
            await self._write_draft()
            return None

        self._record = record
        self._status = SessionStatus.FINALIZED
        self._draft_dirty = False
        self._cancel_sync()
        await self._clear_draft()
        logger.info(
            "Questionnaire finalized for user %s: %d/%d questions answered",
            self._user_id,
            record.metadata.questions_answered,
            record.metadata.total_questions,
        )
        return record

    # ==================================================================
    # Draft persistence
    # ==================================================================

    def _schedule_save(self) -> None:
        """(Re)start the trailing debounce timer for the draft write."""
        self._cancel_save()
        self._draft_dirty = True
        self._save_task = asyncio.create_task(self._save_after_delay())

    async def _save_after_delay(self) -> None:
        await asyncio.sleep(self._draft_debounce)
        # Past the window: a later answer schedules a new write instead of
        # cancelling this one.
        task = asyncio.current_task()
        self._save_task = None
        self._writes.add(task)
        task.add_done_callback(self._writes.discard)
        await self._write_draft()

    def _cancel_save(self) -> None:
        if self._save_task is not None:
            self._save_task.cancel()
            self._save_task = None

    async def _drain_writes(self) -> None:
        """Wait for writes whose debounce timer already fired."""
        if self._writes:
            await asyncio.gather(*self._writes, return_exceptions=True)

    async def _write_draft(self) -> bool:
        async with self._write_lock:
            if self._status is SessionStatus.FINALIZED:
                return False
            snapshot = build_snapshot(self._flow.state, self._clock())
            try:
                await self._drafts.save(snapshot)
            except PersistenceError as exc:
                self._draft_dirty = True
                logger.warning(
                    "Draft write to %s failed, will retry: %s", self._drafts.key, exc
                )
                return False
            self._draft_dirty = False
            self._clear_pending = False
        self._schedule_sync(snapshot)
        return True

    async def _clear_draft(self) -> bool:
        async with self._write_lock:
            try:
                await self._drafts.clear()
            except PersistenceError as exc:
                self._clear_pending = True
                logger.warning("Could not remove draft %s: %s", self._drafts.key, exc)
                return False
        self._clear_pending = False
        return True

    # ==================================================================
    # Remote sync
    # ==================================================================

    def _schedule_sync(self, snapshot: DraftSnapshot) -> None:
        """(Re)start the remote sync timer with the latest written draft."""
        if self._sync is None or self._user_id is None:
            return
        self._cancel_sync()
        payload = snapshot.model_dump(mode="json", by_alias=True)
        self._sync_task = asyncio.create_task(self._sync_after_delay(payload))

    async def _sync_after_delay(self, payload: dict[str, Any]) -> None:
        await asyncio.sleep(self._sync_debounce)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._sync_attempts),
                wait=wait_exponential(
                    multiplier=self._sync_retry_min,
                    min=self._sync_retry_min,
                    max=self._sync_retry_max,
                ),
                retry=retry_if_exception_type(SyncError),
                reraise=True,
            ):
                with attempt:
                    await self._sync.upsert(self._user_id, payload)
        except SyncError as exc:
            logger.warning(
                "Remote sync for user %s gave up after %d attempts: %s",
                self._user_id, self._sync_attempts, exc,
            )
        else:
            logger.debug("Remote sync for user %s succeeded", self._user_id)

    def _cancel_sync(self) -> None:
        if self._sync_task is not None and not self._sync_task.done():
            self._sync_task.cancel()
        self._sync_task = None
