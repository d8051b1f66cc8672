"""Tests for environment-driven settings."""

from pathlib import Path

from agentline.config import AgentlineSettings


def test_defaults(monkeypatch):
    monkeypatch.delenv("AGENTLINE_PERSIST_DIR", raising=False)
    monkeypatch.delenv("AGENTLINE_MAX_AGENTS", raising=False)
    settings = AgentlineSettings()
    assert settings.persist_dir is None
    assert settings.max_agents == 100
    assert settings.max_notepad_size == 1024 * 1024
    assert settings.max_tasks_per_agent == 1000


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("AGENTLINE_PERSIST_DIR", str(tmp_path))
    monkeypatch.setenv("AGENTLINE_MAX_AGENTS", "5")
    monkeypatch.setenv("AGENTLINE_LOG_LEVEL", "debug")
    settings = AgentlineSettings()
    assert settings.persist_dir == Path(tmp_path)
    assert settings.max_agents == 5
    assert settings.log_level == "debug"
