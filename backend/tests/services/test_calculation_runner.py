"""Calculation Runner — event sequence, failure recording, and emission policies.

Invariants:
    - Four events, one correlation id, fixed order on success
    - Scoring failure → CALC_COMPLETED(failure) then the original error
    - ABORT stops on the first emission failure; CONTINUE records the gap
"""

import uuid

import pytest

from investscore.core.calculation_events import CalcCompleted
from investscore.core.domain_types import (
    CompletionStatus, EmissionFailurePolicy, EventType, Operator,
)
from investscore.core.errors import EventEmissionError, InvalidCriterionError
from investscore.core.scoring_inputs import CriterionRule
from investscore.services.calculation_runner import (
    CalculationRunner, calculate_scores_with_events,
)

FIXED_ID = uuid.UUID("6f1c2d3e-4a5b-4c6d-8e7f-901234567890")


class FlakyEmitter:
    """Forwards to a store but raises for the chosen event types."""

    def __init__(self, store, fail_on):
        self.store = store
        self.fail_on = set(fail_on)

    async def emit(self, user_id, event):
        if event.type in self.fail_on:
            raise ConnectionError("event store unavailable")
        await self.store.emit(user_id, event)


async def _events(store, correlation_id):
    return await store.get_by_correlation_id(correlation_id)


async def test_emits_four_events_in_lifecycle_order(memory_store, context, criteria, assets):
    run = await CalculationRunner(memory_store).run(context, criteria, assets)

    events = await _events(memory_store, run.correlation_id)
    assert [e.event_type for e in events] == list(EventType)
    assert {e.correlation_id for e in events} == {run.correlation_id}
    assert {e.user_id for e in events} == {"user-1"}
    assert len(memory_store) == 4


async def test_returns_scores_for_every_asset(memory_store, context, criteria, assets):
    run = await CalculationRunner(memory_store).run(context, criteria, assets)

    assert [(s.asset_id, s.score) for s in run.scores] == [
        ("a-1", "15.0000"), ("a-2", "0.0000"), ("a-3", "0.0000"),
    ]
    assert run.asset_count == 3
    assert run.max_possible_score == "15.0000"
    assert run.missed_events == []


async def test_event_payloads_describe_the_run(memory_store, context, criteria, assets):
    run = await CalculationRunner(memory_store).run(context, criteria, assets)
    started, captured, computed, completed = [
        e.event for e in await _events(memory_store, run.correlation_id)
    ]

    assert started.criteria_version_id == "cv-1"
    assert started.market == "BR"
    assert captured.asset_ids == ("a-1", "a-2", "a-3")
    assert captured.assets[0]["fundamentals"] == {"dividend_yield": "6.0", "pe_ratio": "8.2"}
    assert list(computed.results) == run.scores
    assert completed.status == CompletionStatus.SUCCESS
    assert completed.asset_count == 3


async def test_correlation_id_is_fresh_per_run(memory_store, context, criteria, assets):
    runner = CalculationRunner(memory_store)
    first = await runner.run(context, criteria, assets)
    second = await runner.run(context, criteria, assets)
    assert first.correlation_id != second.correlation_id
    uuid.UUID(first.correlation_id)


async def test_injected_id_and_timer(memory_store, context, criteria, assets):
    ticks = iter([100.0, 100.25])
    runner = CalculationRunner(
        memory_store, id_factory=lambda: FIXED_ID, timer=lambda: next(ticks),
    )
    run = await runner.run(context, criteria, assets)
    assert run.correlation_id == str(FIXED_ID)
    assert run.duration_ms == 250


async def test_empty_batch_still_records_full_trail(memory_store, context):
    run = await CalculationRunner(memory_store).run(context, [], [])
    assert run.scores == []
    events = await _events(memory_store, run.correlation_id)
    assert [e.event_type for e in events] == list(EventType)


async def test_invalid_criterion_records_failure_then_raises(memory_store, context, assets):
    broken = CriterionRule(
        id="c-bad", name="Broken", metric="pe_ratio", operator=Operator.BETWEEN, value="5",
    )
    with pytest.raises(InvalidCriterionError) as exc_info:
        await CalculationRunner(memory_store).run(context, [broken], assets)

    correlation_id = exc_info.value.context.correlation_id
    events = await _events(memory_store, correlation_id)
    assert [e.event_type for e in events] == [
        EventType.CALC_STARTED, EventType.INPUTS_CAPTURED, EventType.CALC_COMPLETED,
    ]
    completed: CalcCompleted = events[-1].event
    assert completed.status == CompletionStatus.FAILURE
    assert completed.error_code == "INVALID_CRITERION"
    assert "c-bad" in completed.error_message


async def test_abort_policy_stops_and_records_failure(memory_store, context, criteria, assets):
    emitter = FlakyEmitter(memory_store, {EventType.INPUTS_CAPTURED})
    runner = CalculationRunner(emitter, EmissionFailurePolicy.ABORT)

    with pytest.raises(EventEmissionError) as exc_info:
        await runner.run(context, criteria, assets)

    assert isinstance(exc_info.value.__cause__, ConnectionError)
    events = await _events(memory_store, exc_info.value.correlation_id)
    assert [e.event_type for e in events] == [EventType.CALC_STARTED, EventType.CALC_COMPLETED]
    assert events[-1].event.error_code == "EVENT_EMISSION_FAILED"


async def test_abort_on_final_event_does_not_retry_completion(
    memory_store, context, criteria, assets,
):
    emitter = FlakyEmitter(memory_store, {EventType.CALC_COMPLETED})
    with pytest.raises(EventEmissionError):
        await CalculationRunner(emitter).run(context, criteria, assets)

    assert len(memory_store) == 3


async def test_abort_when_store_is_down_raises_emission_error(
    memory_store, context, criteria, assets,
):
    emitter = FlakyEmitter(memory_store, set(EventType))
    with pytest.raises(EventEmissionError):
        await CalculationRunner(emitter).run(context, criteria, assets)
    assert len(memory_store) == 0


async def test_continue_policy_returns_scores_and_reports_gap(
    memory_store, context, criteria, assets,
):
    emitter = FlakyEmitter(memory_store, {EventType.SCORES_COMPUTED})
    run = await CalculationRunner(emitter, EmissionFailurePolicy.CONTINUE).run(
        context, criteria, assets,
    )

    assert run.scores[0].score == "15.0000"
    assert run.missed_events == [EventType.SCORES_COMPUTED]
    events = await _events(memory_store, run.correlation_id)
    assert [e.event_type for e in events] == [
        EventType.CALC_STARTED, EventType.INPUTS_CAPTURED, EventType.CALC_COMPLETED,
    ]


async def test_one_shot_helper_matches_runner(memory_store, context, criteria, assets):
    run = await calculate_scores_with_events(context, criteria, assets, memory_store)
    assert [s.score for s in run.scores] == ["15.0000", "0.0000", "0.0000"]
    assert len(memory_store) == 4
