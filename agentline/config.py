"""Global configuration — loaded from environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings


class AgentlineSettings(BaseSettings):
    persist_dir: Path | None = None
    log_level: str = "WARNING"

    # Directory server
    max_agents: int = 100

    # Collaborator servers
    max_notepad_size: int = 1024 * 1024  # characters per notepad
    max_tasks_per_agent: int = 1000

    model_config = {"env_prefix": "AGENTLINE_"}


settings = AgentlineSettings()
