"""Language model adapter used by the research stages and extractors."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

from openai import (
    AsyncOpenAI,
    ContentFilterFinishReasonError,
    LengthFinishReasonError,
    OpenAIError,
)
from pydantic import BaseModel, ValidationError

from leadscout.services.research.errors import ExtractionError, ModelProviderError

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)
Message = dict[str, Any]


@dataclass(frozen=True)
class ToolCall:
    """A single function call requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ModelTurn:
    """One assistant response: free text plus any requested tool calls."""

    text: str = ""
    tool_calls: tuple[ToolCall, ...] = ()

    def as_message(self) -> Message:
        """Assistant message to append to the conversation history."""
        message: Message = {"role": "assistant", "content": self.text or None}
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                }
                for call in self.tool_calls
            ]
        return message


class ResearchModel(Protocol):
    """Minimal contract for tool-calling chat and constrained extraction."""

    async def complete(
        self,
        *,
        messages: list[Message],
        model: str,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | None = None,
    ) -> ModelTurn:
        ...

    async def extract(
        self,
        *,
        prompt: str,
        schema: type[SchemaT],
        model: str,
        system_prompt: str | None = None,
    ) -> SchemaT:
        ...


class OpenAIResearchModel:
    """Thin wrapper around the official async OpenAI chat completions API."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        client: AsyncOpenAI | None = None,
        temperature: float | None = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise ValueError("OPENAI_API_KEY is required to run research.")
            client = AsyncOpenAI(api_key=api_key)
        self._client = client
        self._temperature = temperature

    async def complete(
        self,
        *,
        messages: list[Message],
        model: str,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | None = None,
    ) -> ModelTurn:
        kwargs: dict[str, Any] = {"model": model, "messages": messages}
        if tools:
            kwargs["tools"] = tools
            if tool_choice:
                kwargs["tool_choice"] = tool_choice
        if self._temperature is not None:
            kwargs["temperature"] = self._temperature

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except OpenAIError as exc:
            code = "429_RATE_LIMIT" if getattr(exc, "status_code", None) == 429 else "502_OPENAI_UPSTREAM"
            raise ModelProviderError(f"OpenAI request failed: {exc}", code=code) from exc

        if not response.choices:
            raise ModelProviderError("OpenAI response had no choices.", code="502_OPENAI_UPSTREAM")
        message = response.choices[0].message
        calls: list[ToolCall] = []
        for call in message.tool_calls or []:
            function = getattr(call, "function", None)
            if function is None:
                continue
            calls.append(
                ToolCall(id=call.id, name=function.name, arguments=_parse_arguments(function.arguments))
            )
        return ModelTurn(text=(message.content or "").strip(), tool_calls=tuple(calls))

    async def extract(
        self,
        *,
        prompt: str,
        schema: type[SchemaT],
        model: str,
        system_prompt: str | None = None,
    ) -> SchemaT:
        messages: list[Message] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        kwargs: dict[str, Any] = {}
        if self._temperature is not None:
            kwargs["temperature"] = self._temperature

        try:
            completion = await self._client.chat.completions.parse(
                model=model,
                messages=messages,
                response_format=schema,
                **kwargs,
            )
        except (LengthFinishReasonError, ContentFilterFinishReasonError) as exc:
            raise ExtractionError(f"{schema.__name__} extraction was cut off: {exc}") from exc
        except ValidationError as exc:
            raise ExtractionError(f"{schema.__name__} extraction did not match the schema.") from exc
        except OpenAIError as exc:
            raise ModelProviderError(f"OpenAI request failed: {exc}", code="502_OPENAI_UPSTREAM") from exc

        if not completion.choices:
            raise ExtractionError(f"{schema.__name__} extraction returned no choices.")
        message = completion.choices[0].message
        if getattr(message, "refusal", None):
            raise ExtractionError(f"{schema.__name__} extraction was refused: {message.refusal}")
        if message.parsed is None:
            raise ExtractionError(f"{schema.__name__} extraction returned no structured output.")
        return message.parsed


def _parse_arguments(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("model.tool_arguments_invalid", extra={"raw": raw[:200]})
        return {}
    return parsed if isinstance(parsed, dict) else {}
