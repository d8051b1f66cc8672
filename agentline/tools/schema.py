"""Tool schema — describes what a tool is and what it accepts."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ToolArguments(BaseModel):
    """Base for every tool's argument model.

    ``agentName`` identifies the calling agent and is present on every call.
    Unknown keys are ignored so older clients keep working.
    """

    agent_name: str = Field(alias="agentName", min_length=1, description="Name of the calling agent")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ToolSchema(BaseModel):
    """Complete description of a tool that agents can call."""

    name: str
    description: str
    arguments: type[ToolArguments] = ToolArguments

    def input_schema(self) -> dict[str, Any]:
        """JSON Schema of the arguments, keyed by wire (alias) names."""
        schema = self.arguments.model_json_schema(by_alias=True)
        schema.pop("title", None)
        for prop in schema.get("properties", {}).values():
            prop.pop("title", None)
        schema.setdefault("required", [])
        return schema

    def to_wire(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema(),
        }
