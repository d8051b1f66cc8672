"""Tests for the agentline CLI."""

from typer.testing import CliRunner

from agentline.cli.main import app
from agentline.protocol.engine import ProtocolEngine

runner = CliRunner()


def test_help_lists_servers():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("directory", "notepad", "tasks", "kanban", "version"):
        assert command in result.output


def test_server_help():
    result = runner.invoke(app, ["directory", "--help"])
    assert result.exit_code == 0
    assert "--persist-dir" in result.output


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0


def test_server_failure_exits_nonzero(monkeypatch, tmp_path):
    async def fail(self, reader=None, writer=None):
        raise RuntimeError("stdin unavailable")

    monkeypatch.setattr(ProtocolEngine, "start", fail)
    result = runner.invoke(app, ["notepad", "--persist-dir", str(tmp_path)])
    assert result.exit_code == 1


def test_server_runs_until_input_closes(monkeypatch, tmp_path):
    started = []

    async def serve(self, reader=None, writer=None):
        started.append(self.provider.name)

    monkeypatch.setattr(ProtocolEngine, "start", serve)
    result = runner.invoke(app, ["kanban", "--persist-dir", str(tmp_path)])
    assert result.exit_code == 0
    assert started == ["agent-kanban"]
