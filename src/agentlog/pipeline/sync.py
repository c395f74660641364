"""
Batch synchronization of session log files into the store.

Each source is imported independently: stat, watermark check, decode and
classify every line, then replace the session's events inside a single
transaction. A source that fails to import is rolled back completely and
never stops the rest of the batch.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agentlog.config import settings
from agentlog.db.connection import transaction
from agentlog.db.repositories import (
    EventRepository,
    SessionRepository,
    ToolUseRepository,
)
from agentlog.exceptions import SourceUnreadableError, StoreWriteError
from agentlog.models.events import MessageEvent, NormalizedEvent
from agentlog.parsers import (
    ParseIssue,
    ParseIssueKind,
    ParseIssueSeverity,
    SchemaDiscovery,
    classify,
    first_model,
    iter_jsonl,
)
from agentlog.parsers.utils import as_utc
from agentlog.pipeline.sources import SessionSource

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImportStatus(str, Enum):
    """Result of importing one source."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ImportOutcome:
    """What happened to one source during a sync pass."""

    source: SessionSource
    status: ImportStatus
    reason: Optional[str] = None
    events_parsed: int = 0
    events_created: int = 0
    tool_uses_created: int = 0
    issues: list[ParseIssue] = field(default_factory=list)

    @property
    def session_id(self) -> str:
        return self.source.session_id


@dataclass
class SyncReport:
    """Aggregated counters and issues for a batch of sources."""

    outcomes: list[ImportOutcome] = field(default_factory=list)

    def add(self, outcome: ImportOutcome) -> None:
        self.outcomes.append(outcome)

    def _count(self, status: ImportStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def sessions_created(self) -> int:
        return self._count(ImportStatus.CREATED)

    @property
    def sessions_updated(self) -> int:
        return self._count(ImportStatus.UPDATED)

    @property
    def sessions_skipped(self) -> int:
        return self._count(ImportStatus.SKIPPED)

    @property
    def sessions_failed(self) -> int:
        return self._count(ImportStatus.FAILED)

    @property
    def events_created(self) -> int:
        return sum(outcome.events_created for outcome in self.outcomes)

    @property
    def tool_uses_created(self) -> int:
        return sum(outcome.tool_uses_created for outcome in self.outcomes)

    @property
    def issues(self) -> list[ParseIssue]:
        return [issue for outcome in self.outcomes for issue in outcome.issues]

    @property
    def has_failures(self) -> bool:
        return self.sessions_failed > 0


@dataclass
class _ParsedSource:
    events: list[NormalizedEvent]
    issues: list[ParseIssue]


class BatchSynchronizer:
    """
    Imports session log files into the store.

    Args:
        session_factory: Callable returning a new SQLAlchemy session; one
            session is opened per source and closed afterwards
        discovery: Optional schema observer fed with every classified event
        chunk_size: Bytes per read when decoding files
        clock: Returns the current time (timezone-aware)
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        discovery: Optional[SchemaDiscovery] = None,
        chunk_size: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.session_factory = session_factory
        self.discovery = discovery
        self.chunk_size = chunk_size or settings.read_chunk_size
        self.clock = clock

    def sync_all(
        self,
        sources: Iterable[SessionSource],
        dry_run: bool = False,
        on_outcome: Optional[Callable[[ImportOutcome], None]] = None,
    ) -> SyncReport:
        """
        Import sources one after another.

        Args:
            sources: Sources to import, processed in order
            dry_run: Decode and classify only; the store is never touched
            on_outcome: Called after each source completes

        Returns:
            SyncReport aggregating every outcome
        """
        report = SyncReport()
        for source in sources:
            outcome = self.sync(source, dry_run=dry_run)
            report.add(outcome)
            if on_outcome:
                on_outcome(outcome)

        logger.info(
            f"Sync finished: {report.sessions_created} created, "
            f"{report.sessions_updated} updated, {report.sessions_skipped} skipped, "
            f"{report.sessions_failed} failed, {report.events_created} events"
        )
        return report

    def sync(self, source: SessionSource, dry_run: bool = False) -> ImportOutcome:
        """
        Import one log file.

        Returns:
            ImportOutcome; never raises for per-source problems
        """
        try:
            stat = source.path.stat()
        except OSError as e:
            return self._failed_unreadable(source, SourceUnreadableError(str(source.path), str(e)))

        mtime = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)

        if dry_run:
            return self._dry_run(source)

        session = self.session_factory()
        try:
            try:
                existing = SessionRepository(session).get_by_session_id(source.session_id)
            except SQLAlchemyError as e:
                return self._failed_store(
                    session, source, StoreWriteError(source.session_id, str(e)), []
                )
            watermark = as_utc(existing.last_imported_at) if existing else None
            if watermark is not None and watermark >= mtime:
                logger.debug(f"Skipping {source.path}: unchanged since {watermark.isoformat()}")
                return ImportOutcome(source=source, status=ImportStatus.SKIPPED, reason="unchanged")

            try:
                parsed = self._parse(source)
            except SourceUnreadableError as e:
                return self._failed_unreadable(source, e)

            if not parsed.events:
                logger.info(f"Skipping {source.path}: no events")
                return ImportOutcome(
                    source=source,
                    status=ImportStatus.SKIPPED,
                    reason="no events",
                    issues=parsed.issues,
                )

            try:
                return self._store(session, source, parsed, stat.st_size, mtime, watermark)
            except StoreWriteError as e:
                outcome = self._failed_store(session, source, e, parsed.issues)
                outcome.events_parsed = len(parsed.events)
                return outcome
        finally:
            session.close()

    def _parse(self, source: SessionSource) -> _ParsedSource:
        events: list[NormalizedEvent] = []
        issues: list[ParseIssue] = []

        if self.discovery:
            self.discovery.record_file()

        for item in iter_jsonl(source.path, chunk_size=self.chunk_size):
            if isinstance(item, ParseIssue):
                item.with_source(source.session_id)
                issues.append(item)
                if self.discovery:
                    self.discovery.record_issue(item)
                continue

            classified = classify(
                item.value, session_id=source.session_id, line_number=item.line_number
            )
            for issue in classified.issues:
                issue.with_source(source.session_id)
            issues.extend(classified.issues)
            events.append(classified.event)
            if self.discovery:
                self.discovery.observe(classified.event)

        return _ParsedSource(events=events, issues=issues)

    def _dry_run(self, source: SessionSource) -> ImportOutcome:
        try:
            parsed = self._parse(source)
        except SourceUnreadableError as e:
            return self._failed_unreadable(source, e)

        return ImportOutcome(
            source=source,
            status=ImportStatus.SKIPPED,
            reason="dry run",
            events_parsed=len(parsed.events),
            issues=parsed.issues,
        )

    def _store(
        self,
        session: Session,
        source: SessionSource,
        parsed: _ParsedSource,
        source_size: int,
        mtime: datetime,
        previous_watermark: Optional[datetime],
    ) -> ImportOutcome:
        events = parsed.events
        issues = list(parsed.issues)
        session_id = source.session_id

        session_repo = SessionRepository(session)
        event_repo = EventRepository(session)
        tool_use_repo = ToolUseRepository(session)

        # Never move the watermark backwards, even with a skewed clock
        candidates = [self.clock(), mtime]
        if previous_watermark is not None:
            candidates.append(previous_watermark)
        imported_at = max(candidates)

        tool_uses_created = 0
        try:
            with transaction(session):
                record, created = session_repo.upsert(
                    session_id,
                    project_path=source.project_path,
                    is_agent=source.is_agent,
                    agent_id=source.agent_id,
                    created_at=events[0].timestamp,
                    last_active=events[-1].timestamp,
                    model=first_model(events),
                    source_path=str(source.path),
                    source_size=source_size,
                    last_imported_at=imported_at,
                )
                if not created:
                    removed = event_repo.delete_by_session(session_id)
                    logger.debug(f"Replacing {removed} stored events of session {session_id}")

                for event in events:
                    tool_uses_created += self._store_event(
                        event, event_repo, session_repo, tool_use_repo, issues
                    )

                record.event_count = event_repo.count_by_session(session_id)
        except StoreWriteError:
            raise
        except SQLAlchemyError as e:
            raise StoreWriteError(session_id, str(e)) from e

        status = ImportStatus.CREATED if created else ImportStatus.UPDATED
        logger.info(
            f"{status.value.capitalize()} session {session_id}: "
            f"{record.event_count} events, {tool_uses_created} tool uses"
        )
        return ImportOutcome(
            source=source,
            status=status,
            events_parsed=len(events),
            events_created=record.event_count,
            tool_uses_created=tool_uses_created,
            issues=issues,
        )

    def _store_event(
        self,
        event: NormalizedEvent,
        event_repo: EventRepository,
        session_repo: SessionRepository,
        tool_use_repo: ToolUseRepository,
        issues: list[ParseIssue],
    ) -> int:
        try:
            _, previous_owner = event_repo.upsert(event)
        except SQLAlchemyError as e:
            raise StoreWriteError(event.session_id, str(e), event_uuid=event.uuid) from e

        if previous_owner:
            logger.warning(
                f"Event {event.uuid} moved from session {previous_owner} "
                f"to {event.session_id}"
            )
            session_repo.adjust_event_count(previous_owner, -1)

        if not isinstance(event, MessageEvent) or not event.tool_uses:
            return 0

        if not event.uuid:
            logger.warning(
                f"Dropping {len(event.tool_uses)} tool use(s) of uuid-less event "
                f"at line {event.line_number} in session {event.session_id}"
            )
            issues.append(
                ParseIssue(
                    kind=ParseIssueKind.SCHEMA_MISMATCH,
                    message=f"{len(event.tool_uses)} tool use(s) dropped: event has no uuid",
                    line_number=event.line_number,
                    field="uuid",
                    source=event.session_id,
                )
            )
            return 0

        created = 0
        for tool_use in event.tool_uses:
            try:
                if tool_use_repo.add_if_absent(tool_use) is not None:
                    created += 1
                else:
                    logger.debug(f"Skipping duplicate tool use {tool_use.tool_call_id}")
            except SQLAlchemyError as e:
                raise StoreWriteError(event.session_id, str(e), event_uuid=event.uuid) from e
        return created

    def _failed_store(
        self,
        session: Session,
        source: SessionSource,
        error: StoreWriteError,
        issues: list[ParseIssue],
    ) -> ImportOutcome:
        session.rollback()
        logger.error(f"Import of {source.path} rolled back: {error}")
        issue = ParseIssue(
            kind=ParseIssueKind.STORE_WRITE_FAILURE,
            message=str(error),
            severity=ParseIssueSeverity.ERROR,
            source=source.session_id,
        )
        return ImportOutcome(
            source=source,
            status=ImportStatus.FAILED,
            reason=str(error),
            issues=list(issues) + [issue],
        )

    def _failed_unreadable(
        self, source: SessionSource, error: SourceUnreadableError
    ) -> ImportOutcome:
        logger.error(str(error))
        issue = ParseIssue(
            kind=ParseIssueKind.SOURCE_UNREADABLE,
            message=error.reason,
            severity=ParseIssueSeverity.ERROR,
            source=source.session_id,
        )
        return ImportOutcome(
            source=source,
            status=ImportStatus.FAILED,
            reason=str(error),
            issues=[issue],
        )
