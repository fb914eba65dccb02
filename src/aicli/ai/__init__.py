"""Language model access."""

from aicli.ai.gateway import GeminiGateway, ModelGateway, ModelResponse
from aicli.ai.tools import ToolConfig, ToolRegistry

__all__ = ["GeminiGateway", "ModelGateway", "ModelResponse", "ToolConfig", "ToolRegistry"]
