from __future__ import annotations

import asyncio

import pytest

from leadscout.services.research.llm import ModelTurn, ToolCall
from leadscout.services.research.search import SearchTool
from leadscout.services.research.tool_loop import StopReason, ToolLoop
from tests.helpers.fakes import FakeSearchProvider, ScriptedModel, hit, search_turn


def _loop(model: ScriptedModel, provider) -> ToolLoop:
    return ToolLoop(model, SearchTool(provider), model_name="gpt-4o")


@pytest.mark.asyncio
async def test_loop_stops_when_model_answers_without_tools():
    model = ScriptedModel([search_turn('"acme.io" company'), ModelTurn(text="Acme builds rockets.")])
    provider = FakeSearchProvider([hit("Acme", "Acme builds rockets")])

    transcript = await _loop(model, provider).run(stage="research", user_prompt="go", max_round_trips=3)

    assert transcript.stop_reason is StopReason.MODEL_FINISHED
    assert transcript.text == "Acme builds rockets."
    assert transcript.round_trips == 1
    assert [record.title for record in transcript.evidence] == ["Acme"]
    assert len(model.complete_calls) == 2


@pytest.mark.asyncio
async def test_loop_enforces_round_trip_cap():
    model = ScriptedModel([search_turn(f'"acme.io" query {i}') for i in range(10)])
    provider = FakeSearchProvider([hit("Acme", "evidence")])

    transcript = await _loop(model, provider).run(stage="people", user_prompt="go", max_round_trips=5)

    assert transcript.stop_reason is StopReason.ROUND_TRIP_CAP
    assert transcript.round_trips == 5
    assert transcript.search_calls == 5
    assert len(model.complete_calls) == 6
    assert model.complete_calls[-1]["tool_choice"] == "none"
    assert transcript.text == "final answer"
    assert len(transcript.evidence) == 5


@pytest.mark.asyncio
async def test_tool_results_are_fed_back_to_the_model():
    model = ScriptedModel([search_turn('"acme.io" founders'), ModelTurn(text="done")])
    provider = FakeSearchProvider([hit("Founders", "Jane Doe founded Acme", url="https://acme.io/about")])

    await _loop(model, provider).run(
        stage="people",
        user_prompt="find people",
        system_prompt="be careful",
        max_round_trips=2,
    )

    second_call = model.complete_calls[1]["messages"]
    assert second_call[0] == {"role": "system", "content": "be careful"}
    assert second_call[2]["role"] == "assistant"
    assert second_call[2]["tool_calls"][0]["function"]["name"] == "search"
    assert second_call[3]["role"] == "tool"
    assert "Jane Doe founded Acme" in second_call[3]["content"]


@pytest.mark.asyncio
async def test_searches_within_a_round_trip_run_concurrently():
    in_flight = 0
    peak = 0

    class CountingProvider:
        async def search_and_contents(self, *, query, num_results, max_characters):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return [hit(query, "content")]

    model = ScriptedModel([search_turn("a", "b", "c")])

    transcript = await _loop(model, CountingProvider()).run(stage="research", user_prompt="go", max_round_trips=1)

    assert peak == 3
    assert sorted(record.title for record in transcript.evidence) == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_failed_searches_degrade_to_empty_evidence():
    model = ScriptedModel([search_turn('"acme.io" CEO')])
    provider = FakeSearchProvider(errors=[OSError("network down")])

    transcript = await _loop(model, provider).run(stage="people", user_prompt="go", max_round_trips=3)

    assert transcript.evidence == []
    assert transcript.stop_reason is StopReason.MODEL_FINISHED


@pytest.mark.asyncio
async def test_unknown_tools_and_bad_arguments_are_ignored():
    turn = ModelTurn(
        tool_calls=(
            ToolCall(id="1", name="browse", arguments={"url": "https://acme.io"}),
            ToolCall(id="2", name="search", arguments={"query": 42}),
        )
    )
    provider = FakeSearchProvider([hit("A", "alpha")])

    transcript = await _loop(ScriptedModel([turn]), provider).run(stage="research", user_prompt="go", max_round_trips=2)

    assert transcript.evidence == []
    assert provider.calls == []


@pytest.mark.asyncio
async def test_round_trip_cap_must_be_positive():
    with pytest.raises(ValueError):
        await _loop(ScriptedModel(), FakeSearchProvider()).run(stage="research", user_prompt="go", max_round_trips=0)
