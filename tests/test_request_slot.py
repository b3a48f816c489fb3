from __future__ import annotations
import asyncio

from api.errors import ApiError
from bus.event_bus import EventBus
from services.request_slot import RequestSlot

from conftest import Gate, make_prediction


def _returning(gate: Gate):
    async def action(token):
        return await gate.wait()
    return action


def test_latest_action_wins():
    async def scenario():
        bus = EventBus()
        outcomes = bus.subscribe_outcomes()
        slot: RequestSlot = RequestSlot("prediction", bus=bus)
        first = Gate(make_prediction("KC"), stubborn=True)
        second = Gate(make_prediction("SF"))

        slot.run(_returning(first))
        await first.started.wait()
        slot.run(_returning(second))
        await second.started.wait()

        second.release.set()
        await slot.wait()
        # First response arrives after the second one was shown
        first.release.set()
        await first.returned.wait()
        await asyncio.sleep(0)

        assert slot.value.predicted_winner == "SF"
        assert slot.outcome_count == 1
        assert outcomes.qsize() == 1
        outcome = outcomes.get_nowait()
        assert outcome.ok and outcome.slot == "prediction"
        assert outcome.value.predicted_winner == "SF"

    asyncio.run(scenario())


def test_failure_records_error_and_clears_value():
    async def scenario():
        slot: RequestSlot = RequestSlot("prediction")

        async def succeed(token):
            return make_prediction("KC")

        async def fail(token):
            raise ApiError.server("Unknown team XYZ", status=404)

        await slot.run(succeed)
        assert slot.value.predicted_winner == "KC"

        await slot.run(fail)
        assert slot.value is None
        assert slot.error == "Unknown team XYZ"
        assert not slot.is_loading
        assert slot.outcome_count == 2

    asyncio.run(scenario())


def test_success_clears_previous_error():
    async def scenario():
        slot: RequestSlot = RequestSlot("prediction")

        async def fail(token):
            raise ApiError.transport("request timed out")

        async def succeed(token):
            return make_prediction("BUF")

        await slot.run(fail)
        assert slot.error == "Network error: request timed out"

        await slot.run(succeed)
        assert slot.error is None
        assert slot.value.predicted_winner == "BUF"

    asyncio.run(scenario())


def test_cancel_publishes_nothing():
    async def scenario():
        bus = EventBus()
        outcomes = bus.subscribe_outcomes()
        slot: RequestSlot = RequestSlot("prediction", bus=bus)
        gate = Gate(ApiError.transport("connection reset"), stubborn=True)

        slot.run(_returning(gate))
        await gate.started.wait()
        assert slot.is_loading

        slot.cancel()
        assert not slot.is_loading
        gate.release.set()
        await slot.wait()

        assert slot.value is None
        assert slot.error is None
        assert slot.outcome_count == 0
        assert outcomes.empty()

    asyncio.run(scenario())


def test_cancelled_api_error_is_silent():
    async def scenario():
        slot: RequestSlot = RequestSlot("prediction")

        async def action(token):
            raise ApiError.cancelled()

        await slot.run(action)
        assert slot.error is None
        assert slot.outcome_count == 0

    asyncio.run(scenario())


def test_action_sees_its_token_cancelled_on_supersede():
    async def scenario():
        slot: RequestSlot = RequestSlot("roster")
        seen = []
        gate = Gate(None, stubborn=True)

        async def action(token):
            seen.append(token)
            return await gate.wait()

        slot.run(action)
        await gate.started.wait()
        slot.run(_returning(Gate(None)))

        assert seen[0].is_cancelled
        assert seen[0].reason == "superseded"
        slot.cancel()
        gate.release.set()
        await gate.returned.wait()

    asyncio.run(scenario())


def test_unexpected_exception_becomes_error_message():
    async def scenario():
        slot: RequestSlot = RequestSlot("prediction")

        async def action(token):
            raise RuntimeError("model offline")

        await slot.run(action)
        assert slot.error == "model offline"
        assert slot.value is None

    asyncio.run(scenario())


def test_on_success_runs_only_for_the_occupant():
    async def scenario():
        slot: RequestSlot = RequestSlot("prediction")
        stored = {}
        stale = Gate(make_prediction("KC"), stubborn=True)

        slot.run(_returning(stale), on_success=lambda r: stored.setdefault("a", r))
        await stale.started.wait()
        task = slot.run(_returning(Gate(make_prediction("SF"))), on_success=lambda r: stored.setdefault("b", r))
        # Second gate is never released; release the stale one only
        stale.release.set()
        await stale.returned.wait()
        await asyncio.sleep(0)

        assert stored == {}
        slot.cancel()
        await asyncio.gather(task, return_exceptions=True)

    asyncio.run(scenario())
