"""
Unit tests for availability checks.

Tests verify:
- AvailabilityChecker maps store results to Available/Taken/Indeterminate
- AvailabilityWatcher debounces rapid input into a single check
- Late responses for superseded input never update displayed state
"""

import asyncio
from unittest.mock import Mock

import pytest

from src.domain.availability import AvailabilityChecker, AvailabilityWatcher
from src.domain.exceptions import ProfileStoreError
from src.domain.ports import Availability, Profile

DELAY = 0.05


class TestAvailabilityChecker:
    def test_free_username_available(self, store) -> None:
        assert AvailabilityChecker(store).check_username("ann") is Availability.AVAILABLE

    def test_existing_username_taken(self, store) -> None:
        store.insert(Profile(id="1", username="eve", email="eve@x.com"))

        assert AvailabilityChecker(store).check_username("eve") is Availability.TAKEN

    def test_existing_email_taken_case_insensitive(self, store) -> None:
        store.insert(Profile(id="1", username="eve", email="eve@x.com"))

        assert AvailabilityChecker(store).check_email(" EVE@x.com ") is Availability.TAKEN

    def test_blank_candidate_indeterminate_without_lookup(self, store) -> None:
        assert AvailabilityChecker(store).check_username("   ") is Availability.INDETERMINATE
        assert store.calls["get_by_username"] == 0

    def test_store_error_indeterminate(self) -> None:
        broken_store = Mock()
        broken_store.get_by_username.side_effect = ProfileStoreError("timeout", "57014")

        assert AvailabilityChecker(broken_store).check_username("ann") is Availability.INDETERMINATE

    def test_check_dispatches_by_field(self, store) -> None:
        checker = AvailabilityChecker(store)

        assert checker.check("username", "ann") is Availability.AVAILABLE
        assert checker.check("email", "ann@example.com") is Availability.AVAILABLE
        with pytest.raises(ValueError):
            checker.check("password", "x")


class RecordingCheck:
    """Async check that records calls and can be held open per value."""

    def __init__(self, results: dict[str, Availability] | None = None) -> None:
        self.calls: list[str] = []
        self.results = results or {}
        self.gates: dict[str, asyncio.Event] = {}

    def hold(self, value: str) -> asyncio.Event:
        self.gates[value] = asyncio.Event()
        return self.gates[value]

    async def __call__(self, value: str) -> Availability:
        self.calls.append(value)
        if value in self.gates:
            await self.gates[value].wait()
        return self.results.get(value, Availability.AVAILABLE)


class TestAvailabilityWatcher:
    def test_rapid_input_makes_single_call_for_latest_value(self) -> None:
        """'ann' then 'anna' within the window checks only 'anna'."""

        async def scenario() -> tuple[RecordingCheck, AvailabilityWatcher]:
            check = RecordingCheck()
            watcher = AvailabilityWatcher(check, delay=DELAY)
            watcher.submit("ann")
            watcher.submit("anna")
            await watcher.drain()
            return check, watcher

        check, watcher = asyncio.run(scenario())

        assert check.calls == ["anna"]
        assert watcher.current == ("anna", Availability.AVAILABLE)

    def test_late_response_does_not_overwrite_newer_input(self) -> None:
        """A response for 'anna' arriving after 'annab' was typed is dropped."""

        async def scenario() -> tuple[RecordingCheck, list, list]:
            check = RecordingCheck({"anna": Availability.TAKEN, "annab": Availability.AVAILABLE})
            anna_gate = check.hold("anna")
            annab_gate = check.hold("annab")
            delivered: list = []
            watcher = AvailabilityWatcher(
                check, on_result=lambda v, r: delivered.append((v, r)), delay=DELAY
            )

            watcher.submit("anna")
            await asyncio.sleep(DELAY * 3)  # "anna" check is now in flight
            assert check.calls == ["anna"]

            watcher.submit("annab")
            anna_gate.set()  # late "anna" response arrives
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            displayed_before_annab = watcher.current

            annab_gate.set()
            await watcher.drain()
            return check, [displayed_before_annab, watcher.current], delivered

        check, displayed, delivered = asyncio.run(scenario())

        assert check.calls == ["anna", "annab"]
        assert displayed[0] is None
        assert displayed[1] == ("annab", Availability.AVAILABLE)
        assert delivered == [("annab", Availability.AVAILABLE)]

    def test_in_flight_check_not_cancelled(self) -> None:
        """Superseding input discards, but does not abort, an in-flight check."""

        async def scenario() -> list[str]:
            finished: list[str] = []
            check = RecordingCheck()
            gate = check.hold("ann")

            async def tracked(value: str) -> Availability:
                result = await check(value)
                finished.append(value)
                return result

            watcher = AvailabilityWatcher(tracked, delay=DELAY)
            watcher.submit("ann")
            await asyncio.sleep(DELAY * 3)
            watcher.submit("anna")
            gate.set()
            await watcher.drain()
            return finished

        assert asyncio.run(scenario()) == ["ann", "anna"]

    def test_blank_input_clears_without_call(self) -> None:
        async def scenario() -> tuple[RecordingCheck, AvailabilityWatcher]:
            check = RecordingCheck()
            watcher = AvailabilityWatcher(check, delay=DELAY)
            watcher.submit("ann")
            await watcher.drain()
            watcher.submit("   ")
            await watcher.drain()
            return check, watcher

        check, watcher = asyncio.run(scenario())

        assert check.calls == ["ann"]
        assert watcher.current is None

    def test_check_error_reported_as_indeterminate(self) -> None:
        async def failing(value: str) -> Availability:
            raise ConnectionError("down")

        async def scenario() -> AvailabilityWatcher:
            watcher = AvailabilityWatcher(failing, delay=DELAY)
            watcher.submit("ann")
            await watcher.drain()
            return watcher

        assert asyncio.run(scenario()).current == ("ann", Availability.INDETERMINATE)

    def test_close_cancels_pending_timer(self) -> None:
        async def scenario() -> RecordingCheck:
            check = RecordingCheck()
            watcher = AvailabilityWatcher(check, delay=DELAY)
            watcher.submit("ann")
            watcher.close()
            await asyncio.sleep(DELAY * 3)
            return check

        assert asyncio.run(scenario()).calls == []

    def test_async_callback_awaited(self) -> None:
        async def scenario() -> list:
            delivered: list = []

            async def on_result(value: str, result: Availability) -> None:
                delivered.append((value, result))

            watcher = AvailabilityWatcher(RecordingCheck(), on_result=on_result, delay=DELAY)
            watcher.submit("ann")
            await watcher.drain()
            return delivered

        assert asyncio.run(scenario()) == [("ann", Availability.AVAILABLE)]

    def test_failing_callback_is_logged_not_raised(self, caplog) -> None:
        """A listener that fails (closed socket) leaves no task exception behind."""

        async def scenario() -> tuple[AvailabilityWatcher, list[asyncio.Task]]:
            def on_result(value: str, result: Availability) -> None:
                raise RuntimeError("socket closed")

            check = RecordingCheck()
            gate = check.hold("ann")
            watcher = AvailabilityWatcher(check, on_result=on_result, delay=DELAY)
            watcher.submit("ann")
            await asyncio.sleep(DELAY * 3)
            in_flight = list(watcher._in_flight)
            gate.set()
            await watcher.drain()
            return watcher, in_flight

        with caplog.at_level("ERROR"):
            watcher, in_flight = asyncio.run(scenario())

        assert len(in_flight) == 1
        assert in_flight[0].exception() is None
        assert watcher.current == ("ann", Availability.AVAILABLE)
        assert "delivery failed" in caplog.text
