"""Bounded tool-calling session shared by the research stages."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum

from leadscout.models.research import EvidenceRecord
from leadscout.services.research.llm import Message, ResearchModel, ToolCall
from leadscout.services.research.search import SearchTool

logger = logging.getLogger(__name__)


class StopReason(str, Enum):
    MODEL_FINISHED = "model_finished"
    ROUND_TRIP_CAP = "round_trip_cap"


@dataclass
class StageTranscript:
    """What one tool-calling session produced."""

    stage: str
    text: str = ""
    evidence: list[EvidenceRecord] = field(default_factory=list)
    round_trips: int = 0
    search_calls: int = 0
    stop_reason: StopReason = StopReason.MODEL_FINISHED


class ToolLoop:
    """Drives the model through at most ``max_round_trips`` rounds of searches.

    A round trip is one model turn that requested tools followed by the
    execution of those tools. The session ends when the model answers without
    tool calls or when the cap is reached; at the cap the model is asked for a
    final answer with tools disabled. Evidence gathered so far is always kept.
    """

    def __init__(self, model: ResearchModel, search_tool: SearchTool, *, model_name: str) -> None:
        self._model = model
        self._search = search_tool
        self._model_name = model_name

    async def run(
        self,
        *,
        stage: str,
        user_prompt: str,
        max_round_trips: int,
        system_prompt: str | None = None,
    ) -> StageTranscript:
        if max_round_trips < 1:
            raise ValueError("max_round_trips must be >= 1")

        tools = [self._search.definition()]
        messages: list[Message] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})
        transcript = StageTranscript(stage=stage)

        for round_trip in range(1, max_round_trips + 1):
            turn = await self._model.complete(messages=messages, model=self._model_name, tools=tools)
            if not turn.tool_calls:
                transcript.text = turn.text
                transcript.stop_reason = StopReason.MODEL_FINISHED
                self._log_complete(transcript)
                return transcript

            messages.append(turn.as_message())
            batches = await asyncio.gather(*(self._dispatch(call) for call in turn.tool_calls))
            for call, records in zip(turn.tool_calls, batches, strict=True):
                transcript.evidence.extend(records)
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": call.id,
                        "content": json.dumps([record.model_dump() for record in records]),
                    }
                )
            transcript.round_trips = round_trip
            transcript.search_calls += len(turn.tool_calls)
            logger.info(
                "tool_loop.round_trip",
                extra={
                    "stage": stage,
                    "round_trip": round_trip,
                    "tool_calls": len(turn.tool_calls),
                    "evidence": len(transcript.evidence),
                },
            )

        final = await self._model.complete(
            messages=messages,
            model=self._model_name,
            tools=tools,
            tool_choice="none",
        )
        transcript.text = final.text
        transcript.stop_reason = StopReason.ROUND_TRIP_CAP
        self._log_complete(transcript)
        return transcript

    async def _dispatch(self, call: ToolCall) -> list[EvidenceRecord]:
        if call.name != self._search.name:
            logger.warning("tool_loop.unknown_tool", extra={"tool": call.name})
            return []
        query = call.arguments.get("query")
        if not isinstance(query, str):
            return []
        return await self._search.search(query, _coerce_count(call.arguments))

    @staticmethod
    def _log_complete(transcript: StageTranscript) -> None:
        logger.info(
            "tool_loop.complete",
            extra={
                "stage": transcript.stage,
                "round_trips": transcript.round_trips,
                "search_calls": transcript.search_calls,
                "evidence": len(transcript.evidence),
                "stop_reason": transcript.stop_reason.value,
            },
        )


def _coerce_count(arguments: dict) -> int | None:
    value = arguments.get("numResults", arguments.get("num_results"))
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None
