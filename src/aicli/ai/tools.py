"""Provider-side tools available in tool mode."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from google.generativeai import protos
from google.generativeai.types import content_types

logger = logging.getLogger(__name__)


class GoogleSearchTool(content_types.Tool):
    """
    Search grounding for Gemini 2.x models (`google_search`).

    The SDK's Tool wrapper only knows the legacy `google_search_retrieval`
    field and drops anything else when it rebuilds a proto, so this wrapper
    supplies the proto itself.
    """

    def to_proto(self) -> protos.Tool:
        return protos.Tool(google_search=protos.Tool.GoogleSearch())


@dataclass
class ToolConfig:
    """A toggleable Gemini tool."""
    id: str
    name: str
    description: str
    spec: Any
    enabled: bool = False


def default_tools() -> List[ToolConfig]:
    return [
        ToolConfig(
            id="google_search",
            name="Google Search",
            description="Access latest information using Google Search.",
            spec=GoogleSearchTool(),
        ),
        ToolConfig(
            id="code_execution",
            name="Code Execution",
            description=(
                "Generate and execute Python code to perform calculations, "
                "solve problems, or provide accurate information."
            ),
            spec=content_types.Tool(code_execution=protos.CodeExecution()),
        ),
    ]


@dataclass
class ToolRegistry:
    """Per-session set of tools and their enabled state."""

    tools: List[ToolConfig] = field(default_factory=default_tools)

    def get(self, tool_id: str) -> Optional[ToolConfig]:
        for tool in self.tools:
            if tool.id == tool_id:
                return tool
        return None

    def toggle(self, tool_id: str) -> bool:
        """Flip a tool. Returns its new state (False for unknown ids)."""
        tool = self.get(tool_id)
        if tool is None:
            logger.warning(f"Tool {tool_id} not found")
            return False
        tool.enabled = not tool.enabled
        logger.debug(f"Tool {tool_id} toggled to {tool.enabled}")
        return tool.enabled

    def enable(self, tool_ids: Iterable[str]) -> None:
        """Enable exactly the given tools; all others are disabled."""
        wanted = set(tool_ids)
        for tool in self.tools:
            tool.enabled = tool.id in wanted
        logger.debug(f"Tools enabled: {len(self.enabled_names())}/{len(self.tools)}")

    def reset(self) -> None:
        for tool in self.tools:
            tool.enabled = False

    def enabled_names(self) -> List[str]:
        return [tool.name for tool in self.tools if tool.enabled]

    def enabled_tools(self) -> Optional[List[Any]]:
        """Tool specs for the model call, or None when nothing is enabled."""
        specs = [tool.spec for tool in self.tools if tool.enabled]
        return specs or None
