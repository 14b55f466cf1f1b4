"""
Saga runner — ordering, compensation and rollback accounting.
"""

import pytest
from combinators import lift as L
from structlog.testing import capture_logs

from cashier import saga as S
from cashier._types import Error, Ok


class Journal:
    def __init__(self) -> None:
        self.entries: list[str] = []

    def ok(self, name: str, value: object):
        async def action():
            self.entries.append(f"do:{name}")
            return Ok(value)

        return action

    def fail(self, name: str, error: str):
        async def action():
            self.entries.append(f"do:{name}")
            return Error(error)

        return action

    def undo(self, name: str):
        async def compensate(value: object) -> None:
            self.entries.append(f"undo:{name}:{value}")

        return compensate


class TestRun:
    @pytest.mark.asyncio
    async def test_chain_passes_values(self):
        journal = Journal()
        saga = (
            S.from_result(journal.ok("a", 1), compensate=journal.undo("a"), name="a")
            .then(lambda v: S.from_result(journal.ok("b", v + 1), name="b"))
            .then(lambda v: S.from_result(journal.ok("c", v * 10), name="c"))
        )

        result = (await S.run(saga)).unwrap()

        assert result.value == 20
        assert result.steps_executed == 3
        assert result.compensators_recorded == 1
        assert journal.entries == ["do:a", "do:b", "do:c"]

    @pytest.mark.asyncio
    async def test_failure_compensates_in_reverse(self):
        journal = Journal()
        saga = (
            S.from_result(journal.ok("a", "A"), compensate=journal.undo("a"), name="a")
            .then(lambda _: S.from_result(journal.ok("b", "B"), compensate=journal.undo("b"), name="b"))
            .then(lambda _: S.from_result(journal.fail("c", "boom"), name="c"))
        )

        failed = (await S.run(saga)).unwrap_err()

        assert failed.error == "boom"
        assert failed.step_name == "c"
        assert failed.step_failed == 3
        assert failed.compensators_run == 2
        assert failed.rollback_complete
        assert journal.entries == ["do:a", "do:b", "do:c", "undo:b:B", "undo:a:A"]

    @pytest.mark.asyncio
    async def test_failed_step_is_not_compensated(self):
        journal = Journal()
        saga = S.from_result(journal.fail("a", "nope"), compensate=journal.undo("a"), name="a")

        failed = (await S.run(saga)).unwrap_err()

        assert failed.compensators_run == 0
        assert journal.entries == ["do:a"]

    @pytest.mark.asyncio
    async def test_broken_compensator_is_counted_and_logged(self):
        journal = Journal()

        async def explode(_: object) -> None:
            raise RuntimeError("cannot undo")

        saga = (
            S.from_result(journal.ok("a", "A"), compensate=journal.undo("a"), name="a")
            .then(lambda _: S.from_result(journal.ok("b", "B"), compensate=explode, name="b"))
            .then(lambda _: S.from_result(journal.fail("c", "boom"), name="c"))
        )

        with capture_logs() as logs:
            failed = (await S.run(saga)).unwrap_err()

        assert failed.compensators_failed == 1
        assert failed.compensators_run == 1
        assert not failed.rollback_complete
        # rollback continues past the broken compensator
        assert journal.entries[-1] == "undo:a:A"
        assert any(e["event"] == "saga_compensation_failed" for e in logs)

    @pytest.mark.asyncio
    async def test_step_from_lazy_action(self):
        journal = Journal()
        saga = S.step(L.wrap_async(journal.ok("a", 7)), compensate=journal.undo("a"), name="a")

        result = (await S.run(saga)).unwrap()

        assert result.value == 7
        assert result.compensators_recorded == 1

    @pytest.mark.asyncio
    async def test_from_async_catches_exceptions(self):
        async def raising() -> int:
            raise ConnectionError("down")

        saga = S.from_async(raising, on_error=lambda e: f"caught: {e}", name="call")

        failed = (await S.run(saga)).unwrap_err()

        assert failed.error == "caught: down"
