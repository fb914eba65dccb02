"""
Model gateway - streaming chat and structured generation against Gemini.

Every failure is raised as NetworkError, ModelGatewayError or
GenerationError. Nothing is swallowed here; callers decide whether a turn
can be retried.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Type, TypeVar

import google.generativeai as genai
from google.api_core import exceptions
from google.generativeai.types import BlockedPromptException, StopCandidateException
from pydantic import BaseModel, ValidationError

from aicli.errors import GenerationError, ModelGatewayError, NetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

ChatMessage = Dict[str, str]

# Schema keys Gemini's response_schema understands; validation keywords
# (minLength, default, pattern, ...) are rejected by the SDK
_RESPONSE_SCHEMA_KEYS = ("type", "description", "nullable", "enum", "items", "properties", "required")

# Transport-level failures, worth a retry from the user's side
_NETWORK_ERRORS = (
    exceptions.ServiceUnavailable,
    exceptions.DeadlineExceeded,
    exceptions.RetryError,
)


@dataclass
class ModelResponse:
    """Result of a streaming completion."""
    content: str
    finish_reason: Optional[str] = None
    total_tokens: int = 0


class ModelGateway(Protocol):
    """What the chat loop and agent need from a language model."""

    async def stream_text(
        self,
        messages: List[ChatMessage],
        on_chunk: Optional[Callable[[str], None]] = None,
        tools: Optional[List[Any]] = None,
    ) -> ModelResponse:
        ...

    async def generate_object(self, prompt: str, schema: Type[T]) -> T:
        ...


def to_gemini_contents(messages: List[ChatMessage]) -> List[Dict[str, Any]]:
    """Convert {role, content} messages to Gemini contents."""
    contents = []
    for msg in messages:
        role = "model" if msg["role"] == "assistant" else "user"
        contents.append({"role": role, "parts": [msg["content"]]})
    return contents


def to_response_schema(schema: Type[BaseModel]) -> Dict[str, Any]:
    """
    Gemini response_schema for a pydantic model.

    References are inlined and only the keys Gemini accepts are kept. The
    pydantic model still validates the reply, so constraints such as
    min_length hold even though Gemini never sees them.
    """
    json_schema = schema.model_json_schema(by_alias=True)
    defs = json_schema.pop("$defs", {})

    def convert(node: Dict[str, Any]) -> Dict[str, Any]:
        ref = node.get("$ref")
        if ref:
            node = {**defs[ref.rsplit("/", 1)[-1]], **{k: v for k, v in node.items() if k != "$ref"}}

        nullable = False
        variants = node.get("anyOf")
        if variants:
            # Optional[X] becomes X with nullable set
            concrete = [v for v in variants if v.get("type") != "null"]
            if len(concrete) != 1:
                raise ValueError(f"Unsupported union in response schema: {variants}")
            nullable = len(concrete) != len(variants)
            node = {**convert(concrete[0]), **{k: v for k, v in node.items() if k != "anyOf"}}

        result = {k: v for k, v in node.items() if k in _RESPONSE_SCHEMA_KEYS}
        if "properties" in result:
            result["properties"] = {name: convert(prop) for name, prop in result["properties"].items()}
        if "items" in result:
            result["items"] = convert(result["items"])
        if nullable:
            result["nullable"] = True
        return result

    return convert(json_schema)


def _chunk_text(chunk: Any) -> str:
    """Text parts of a streamed chunk (tool calls and code results carry none)."""
    texts = []
    for candidate in chunk.candidates:
        for part in candidate.content.parts:
            if part.text:
                texts.append(part.text)
    return "".join(texts)


class GeminiGateway:
    """Gemini-backed ModelGateway."""

    def __init__(self, api_key: str, model: str):
        genai.configure(api_key=api_key)
        self.model_name = model
        self.model = genai.GenerativeModel(model)
        logger.debug(f"Gemini gateway ready (model={model})")

    async def stream_text(
        self,
        messages: List[ChatMessage],
        on_chunk: Optional[Callable[[str], None]] = None,
        tools: Optional[List[Any]] = None,
    ) -> ModelResponse:
        """Stream a completion, forwarding each text chunk in arrival order."""
        full_response = ""
        try:
            response = await self.model.generate_content_async(
                to_gemini_contents(messages),
                stream=True,
                tools=tools or None,
            )
            async for chunk in response:
                text = _chunk_text(chunk)
                if not text:
                    continue
                full_response += text
                if on_chunk:
                    on_chunk(text)
        except _NETWORK_ERRORS as e:
            raise NetworkError(f"Cannot reach the model service: {e}") from e
        except exceptions.GoogleAPIError as e:
            raise ModelGatewayError(f"Model request failed: {e}") from e
        except (BlockedPromptException, StopCandidateException) as e:
            raise ModelGatewayError(f"Model refused to answer: {e}") from e

        finish_reason = None
        total_tokens = 0
        if response.candidates:
            finish_reason = response.candidates[0].finish_reason.name
        if response.usage_metadata:
            total_tokens = response.usage_metadata.total_token_count

        return ModelResponse(
            content=full_response,
            finish_reason=finish_reason,
            total_tokens=total_tokens,
        )

    async def generate_object(self, prompt: str, schema: Type[T]) -> T:
        """Ask for JSON matching `schema` and validate the result."""
        config = genai.GenerationConfig(
            response_mime_type="application/json",
            response_schema=to_response_schema(schema),
        )
        try:
            response = await self.model.generate_content_async(prompt, generation_config=config)
            raw = response.text
        except _NETWORK_ERRORS as e:
            raise NetworkError(f"Cannot reach the model service: {e}") from e
        except exceptions.GoogleAPIError as e:
            raise ModelGatewayError(f"Model request failed: {e}") from e
        except (BlockedPromptException, StopCandidateException, ValueError) as e:
            raise ModelGatewayError(f"Model returned no usable output: {e}") from e

        try:
            return schema.model_validate_json(raw)
        except ValidationError as e:
            raise GenerationError(f"Model output does not match the expected structure: {e}") from e
