"""
Tests for batch synchronization of session logs into the store.
"""

import os
import time
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from agentlog.db.repositories import EventRepository, SessionRepository, ToolUseRepository
from agentlog.models.db import ToolUse
from agentlog.parsers import ParseIssueKind, SchemaDiscovery
from agentlog.pipeline.sources import SessionSource, discover_sources
from agentlog.pipeline.sync import BatchSynchronizer, ImportStatus, SyncReport

FIXED_NOW = datetime(2025, 1, 1, 12, tzinfo=timezone.utc)


@pytest.fixture
def synchronizer(session_factory):
    return BatchSynchronizer(session_factory, chunk_size=64, clock=lambda: FIXED_NOW)


def _bump_mtime(path, seconds=3600):
    future = time.time() + seconds
    os.utime(path, (future, future))


class TestImport:
    def test_new_session_created(self, synchronizer, session_factory, write_log, log_events):
        path = write_log(
            "sess-a",
            [
                log_events.user("u1"),
                log_events.assistant(
                    "a1",
                    content=[
                        {"type": "text", "text": "Running"},
                        log_events.tool_use("toolu_1"),
                    ],
                    parent="u1",
                ),
            ],
        )

        outcome = synchronizer.sync(SessionSource.from_path(path))

        assert outcome.status == ImportStatus.CREATED
        assert outcome.events_parsed == 2
        assert outcome.events_created == 2
        assert outcome.tool_uses_created == 1

        with session_factory() as session:
            record = SessionRepository(session).get_by_session_id("sess-a")
            assert record.project_path == "-home-dev-project"
            assert record.event_count == 2
            assert record.model == "claude-sonnet-4-5"
            assert record.created_at.hour == 10
            assert record.last_active.second == 5
            assert record.source_size == path.stat().st_size
            assert record.last_imported_at is not None

            events = EventRepository(session).get_by_session("sess-a")
            assert {e.uuid for e in events} == {"u1", "a1"}
            assert all(e.session_id == "sess-a" for e in events)
            tool = session.query(ToolUse).one()
            assert tool.tool_name == "Bash"
            assert tool.event_uuid == "a1"

    def test_unchanged_file_skipped(self, synchronizer, write_log, log_events):
        source = SessionSource.from_path(write_log("sess-a", [log_events.user("u1")]))
        synchronizer.sync(source)

        outcome = synchronizer.sync(source)

        assert outcome.status == ImportStatus.SKIPPED
        assert outcome.reason == "unchanged"

    def test_modified_file_replaces_events(
        self, synchronizer, session_factory, write_log, log_events
    ):
        source = SessionSource.from_path(
            write_log("sess-a", [log_events.user("u1"), log_events.user("u2")])
        )
        synchronizer.sync(source)

        write_log(
            "sess-a",
            [
                log_events.user("u1"),
                log_events.user("u2"),
                log_events.assistant("a1", content=[log_events.tool_use("toolu_9")]),
            ],
        )
        _bump_mtime(source.path)
        outcome = synchronizer.sync(source)

        assert outcome.status == ImportStatus.UPDATED
        assert outcome.events_created == 3
        assert outcome.tool_uses_created == 1
        with session_factory() as session:
            assert EventRepository(session).count_by_session("sess-a") == 3
            assert SessionRepository(session).get_by_session_id("sess-a").event_count == 3
            assert ToolUseRepository(session).count_by_session("sess-a") == 1

    def test_reimport_does_not_duplicate_tool_uses(
        self, synchronizer, session_factory, write_log, log_events
    ):
        lines = [log_events.assistant("a1", content=[log_events.tool_use("toolu_1")])]
        source = SessionSource.from_path(write_log("sess-a", lines))
        synchronizer.sync(source)

        _bump_mtime(source.path)
        outcome = synchronizer.sync(source)

        assert outcome.status == ImportStatus.UPDATED
        assert outcome.tool_uses_created == 1
        with session_factory() as session:
            assert session.query(ToolUse).count() == 1

    def test_watermark_never_moves_backwards(self, session_factory, write_log, log_events):
        source = SessionSource.from_path(write_log("sess-a", [log_events.user("u1")]))
        late = datetime(2099, 1, 1, tzinfo=timezone.utc)
        BatchSynchronizer(session_factory, clock=lambda: late).sync(source)

        _bump_mtime(source.path)
        outcome = BatchSynchronizer(session_factory, clock=lambda: FIXED_NOW).sync(source)

        assert outcome.status == ImportStatus.SKIPPED
        with session_factory() as session:
            stored = SessionRepository(session).get_by_session_id("sess-a").last_imported_at
            assert stored.year == 2099

    def test_agent_log(self, synchronizer, session_factory, write_log, log_events):
        path = write_log("agent-42ab", [log_events.user("u1", isSidechain=True, agentId="42ab")])

        synchronizer.sync(SessionSource.from_path(path))

        with session_factory() as session:
            record = SessionRepository(session).get_by_session_id("agent-42ab")
            assert record.is_agent is True
            assert record.agent_id == "42ab"
            event = EventRepository(session).get_by_uuid("u1")
            assert event.is_sidechain is True
            assert event.agent_id == "42ab"

    def test_unknown_event_types_stored_with_raw(
        self, synchronizer, session_factory, write_log
    ):
        raw = {"type": "summary", "summary": "Refactor", "leafUuid": "x"}
        synchronizer.sync(SessionSource.from_path(write_log("sess-a", [raw])))

        with session_factory() as session:
            (event,) = EventRepository(session).get_by_session("sess-a")
            assert event.type == "summary"
            assert event.raw_data == raw


class TestImportIssues:
    def test_malformed_line_reported_rest_imported(
        self, synchronizer, session_factory, write_log, log_events
    ):
        path = write_log(
            "sess-a",
            [log_events.user("u1"), "{this is not json", log_events.user("u2")],
        )

        outcome = synchronizer.sync(SessionSource.from_path(path))

        assert outcome.status == ImportStatus.CREATED
        assert outcome.events_created == 2
        (issue,) = outcome.issues
        assert issue.kind == ParseIssueKind.LINE_PARSE_ERROR
        assert issue.line_number == 2
        assert issue.source == "sess-a"

    def test_empty_file_skipped(self, synchronizer, session_factory, write_log):
        outcome = synchronizer.sync(SessionSource.from_path(write_log("sess-empty", [])))

        assert outcome.status == ImportStatus.SKIPPED
        assert outcome.reason == "no events"
        with session_factory() as session:
            assert SessionRepository(session).get_by_session_id("sess-empty") is None

    def test_missing_file_fails(self, synchronizer, projects_dir):
        source = SessionSource.from_path(projects_dir / "p" / "gone.jsonl")

        outcome = synchronizer.sync(source)

        assert outcome.status == ImportStatus.FAILED
        assert outcome.issues[0].kind == ParseIssueKind.SOURCE_UNREADABLE

    def test_tool_uses_of_uuidless_event_dropped(
        self, synchronizer, session_factory, write_log, log_events
    ):
        event = log_events.assistant("ignored", content=[log_events.tool_use("toolu_1")])
        del event["uuid"]

        outcome = synchronizer.sync(SessionSource.from_path(write_log("sess-a", [event])))

        assert outcome.status == ImportStatus.CREATED
        assert outcome.events_created == 1
        assert outcome.tool_uses_created == 0
        assert any(i.field == "uuid" for i in outcome.issues)
        with session_factory() as session:
            assert session.query(ToolUse).count() == 0


class TestCrossSession:
    def test_uuid_unique_across_sessions(
        self, synchronizer, session_factory, write_log, log_events
    ):
        first = write_log("sess-a", [log_events.user("shared"), log_events.user("own")])
        second = write_log("sess-b", [log_events.user("shared")])

        synchronizer.sync_all([SessionSource.from_path(first), SessionSource.from_path(second)])

        with session_factory() as session:
            assert EventRepository(session).get_by_uuid("shared").session_id == "sess-b"
            sessions = SessionRepository(session)
            assert sessions.get_by_session_id("sess-a").event_count == 1
            assert sessions.get_by_session_id("sess-b").event_count == 1

    def test_duplicate_tool_call_id_skipped(
        self, synchronizer, session_factory, write_log, log_events
    ):
        first = write_log(
            "sess-a", [log_events.assistant("a1", content=[log_events.tool_use("toolu_1")])]
        )
        second = write_log(
            "sess-b", [log_events.assistant("b1", content=[log_events.tool_use("toolu_1")])]
        )

        report = synchronizer.sync_all(
            [SessionSource.from_path(first), SessionSource.from_path(second)]
        )

        assert [o.tool_uses_created for o in report.outcomes] == [1, 0]
        with session_factory() as session:
            assert session.query(ToolUse).count() == 1


class TestFailureIsolation:
    def test_store_failure_rolls_back_and_batch_continues(
        self, session_factory, write_log, log_events
    ):
        first = SessionSource.from_path(write_log("sess-a", [log_events.user("u1")]))
        second = SessionSource.from_path(write_log("sess-b", [log_events.user("u2")]))
        calls = []

        def flaky_factory():
            session = session_factory()
            calls.append(session)
            if len(calls) == 1:
                session.commit = Mock(side_effect=OperationalError("COMMIT", {}, Exception("disk full")))
            return session

        report = BatchSynchronizer(flaky_factory, clock=lambda: FIXED_NOW).sync_all(
            [first, second]
        )

        assert [o.status for o in report.outcomes] == [ImportStatus.FAILED, ImportStatus.CREATED]
        assert report.outcomes[0].issues[-1].kind == ParseIssueKind.STORE_WRITE_FAILURE
        assert report.has_failures
        with session_factory() as session:
            assert SessionRepository(session).get_by_session_id("sess-a") is None
            assert EventRepository(session).get_by_uuid("u1") is None

        # Nothing was committed, so the next pass retries the source
        retry = BatchSynchronizer(session_factory, clock=lambda: FIXED_NOW).sync(first)
        assert retry.status == ImportStatus.CREATED


class TestDryRun:
    def test_dry_run_never_opens_store(self, write_log, log_events):
        factory = Mock()
        source = SessionSource.from_path(
            write_log("sess-a", [log_events.user("u1"), "{bad", log_events.user("u2")])
        )

        outcome = BatchSynchronizer(factory).sync(source, dry_run=True)

        assert outcome.status == ImportStatus.SKIPPED
        assert outcome.reason == "dry run"
        assert outcome.events_parsed == 2
        assert len(outcome.issues) == 1
        factory.assert_not_called()

    def test_discovery_fed_during_dry_run(self, projects_dir, write_log, log_events):
        write_log("sess-a", [log_events.user("u1"), "{bad"])
        write_log(
            "sess-b",
            [log_events.assistant("a1", content=[log_events.tool_use("t1", name="Grep")])],
        )
        discovery = SchemaDiscovery()

        BatchSynchronizer(Mock(), discovery=discovery).sync_all(
            discover_sources(projects_dir), dry_run=True
        )

        result = discovery.to_dict()
        assert result["statistics"] == {"total_files": 2, "total_events": 2, "error_count": 1}
        assert result["schema"]["tool_names"] == ["Grep"]


class TestSyncReport:
    def test_aggregates(self, synchronizer, projects_dir, write_log, log_events):
        write_log("sess-a", [log_events.user("u1")])
        write_log("sess-b", [])
        seen = []

        report = synchronizer.sync_all(discover_sources(projects_dir), on_outcome=seen.append)

        assert isinstance(report, SyncReport)
        assert len(seen) == 2
        assert report.sessions_created == 1
        assert report.sessions_skipped == 1
        assert report.sessions_failed == 0
        assert report.events_created == 1
        assert not report.has_failures
