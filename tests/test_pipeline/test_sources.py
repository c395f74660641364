"""Tests for session log discovery."""

from pathlib import Path

from agentlog.pipeline.sources import SessionSource, discover_sources


class TestSessionSource:
    def test_identity_from_path(self):
        source = SessionSource.from_path(Path("/logs/-home-dev-app/abc-123.jsonl"))

        assert source.session_id == "abc-123"
        assert source.project_path == "-home-dev-app"
        assert source.is_agent is False
        assert source.agent_id is None

    def test_agent_file(self):
        source = SessionSource.from_path(Path("/logs/-home-dev-app/agent-7f3a.jsonl"))

        assert source.session_id == "agent-7f3a"
        assert source.is_agent is True
        assert source.agent_id == "7f3a"


class TestDiscoverSources:
    def test_finds_logs_recursively_sorted(self, projects_dir, write_log):
        write_log("b-session", [{"type": "user"}], project="-proj-b")
        write_log("a-session", [{"type": "user"}], project="-proj-a")
        (projects_dir / "-proj-a" / "notes.txt").write_text("ignored")

        sources = discover_sources(projects_dir)

        assert [s.session_id for s in sources] == ["a-session", "b-session"]
        assert [s.project_path for s in sources] == ["-proj-a", "-proj-b"]

    def test_single_file(self, write_log):
        path = write_log("only", [{"type": "user"}])

        sources = discover_sources(path)

        assert len(sources) == 1
        assert sources[0].path == path

    def test_missing_directory(self, tmp_path, caplog):
        sources = discover_sources(tmp_path / "nowhere")

        assert sources == []
        assert "Projects directory not found" in caplog.text

    def test_empty_directory(self, projects_dir):
        assert discover_sources(projects_dir) == []
