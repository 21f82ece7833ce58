import asyncio
import unittest
from unittest.mock import MagicMock

from formstate.core import Signal
from formstate.exceptions import DefectError, SubmitError
from formstate.form import state as ops
from formstate.form.builder import FormBuilder, build_schema
from formstate.form.mode import parse_mode
from formstate.form.submission import SubmissionCoordinator, SubmitPhase
from formstate.schema import NumberFromString, ParseError, String, min_length
from tests.helpers import FakeTimer

BUILDER = FormBuilder().add_field("name", String().pipe(min_length(1, "Name required"))).add_field("age", NumberFromString())


async def settle(rounds: int = 5):
    for _ in range(rounds):
        await asyncio.sleep(0)


class CoordinatorTestCase(unittest.IsolatedAsyncioTestCase):
    def make(self, on_submit, mode=None, values=None, **kwargs):
        self.timer = FakeTimer()
        self.state = Signal(ops.initial_state(BUILDER.fields, values or {"name": "Ann", "age": "3"}))
        self.error_handler = MagicMock()
        self.coordinator = SubmissionCoordinator(
            build_schema(BUILDER),
            self.state,
            on_submit,
            parse_mode(mode),
            timer=self.timer,
            error_handler=self.error_handler,
            **kwargs,
        )
        return self.coordinator

    def set_value(self, path, value):
        self.state.set(lambda state: ops.set_value(state, path, value))

    async def asyncTearDown(self):
        self.coordinator.dispose()


class TestSubmit(CoordinatorTestCase):
    async def test_success_records_snapshot_and_count(self):
        contexts = []

        async def on_submit(args, ctx):
            contexts.append((args, ctx))
            return "saved"

        coordinator = self.make(on_submit, runtime="services")
        values = self.state().values
        result = await coordinator.submit("extra")

        self.assertTrue(result.is_success)
        self.assertEqual(result.value, "saved")
        self.assertFalse(coordinator.waiting)
        self.assertEqual(coordinator.phase, SubmitPhase.SUCCESS)

        args, ctx = contexts[0]
        self.assertEqual(args, "extra")
        self.assertEqual(ctx.decoded, {"name": "Ann", "age": 3})
        self.assertIs(ctx.encoded, values)
        self.assertEqual(ctx.runtime, "services")

        state = self.state()
        self.assertEqual(state.submit_count, 1)
        self.assertIs(state.last_submitted_values.encoded, values)
        self.assertEqual(state.last_submitted_values.decoded, {"name": "Ann", "age": 3})

    async def test_sync_submit_operation(self):
        coordinator = self.make(lambda args, ctx: ctx.decoded["age"] * 2)
        result = await coordinator.submit()
        self.assertEqual(result.value, 6)

    async def test_decode_failure_routes_errors_and_skips_submit(self):
        on_submit = MagicMock()
        routed = []
        coordinator = self.make(on_submit, values={"name": "", "age": "3"}, on_decode_failure=routed.append)

        result = await coordinator.submit()

        on_submit.assert_not_called()
        self.assertEqual(result.failure_kind, "decode")
        self.assertIsInstance(result.error, ParseError)
        self.assertEqual(routed[0]["name"].message, "Name required")
        self.assertEqual(self.state().submit_count, 0)
        self.assertEqual(coordinator.phase, SubmitPhase.DECODE_FAILED)

    async def test_typed_submit_failure(self):
        async def on_submit(args, ctx):
            raise SubmitError({"code": 409}, "Conflict")

        coordinator = self.make(on_submit)
        result = await coordinator.submit()

        self.assertEqual(result.failure_kind, "submit")
        self.assertEqual(result.error.error, {"code": 409})
        self.assertEqual(self.state().submit_count, 1)
        self.assertIsNone(self.state().last_submitted_values)
        self.error_handler.assert_not_called()

    async def test_returned_exception_is_a_typed_failure(self):
        coordinator = self.make(lambda args, ctx: ValueError("rejected"))
        result = await coordinator.submit()
        self.assertEqual(result.failure_kind, "submit")
        self.assertIsInstance(result.error.error, ValueError)

    async def test_unexpected_exception_is_a_defect(self):
        def on_submit(args, ctx):
            raise RuntimeError("boom")

        coordinator = self.make(on_submit)
        result = await coordinator.submit()

        self.assertEqual(result.failure_kind, "defect")
        self.assertIsInstance(result.error, DefectError)
        self.assertEqual(result.error.phase, "submit")
        self.error_handler.assert_called_once()
        self.assertEqual(self.state().submit_count, 1)

    async def test_manual_submit_while_in_flight_is_ignored(self):
        gate = asyncio.Event()
        calls = []

        async def on_submit(args, ctx):
            calls.append(args)
            await gate.wait()

        coordinator = self.make(on_submit)
        first = coordinator.submit("first")
        await settle()
        self.assertTrue(coordinator.waiting)

        second = coordinator.submit("second")
        self.assertIs(second, first)

        gate.set()
        await first
        self.assertEqual(calls, ["first"])
        self.assertEqual(self.state().submit_count, 1)

    async def test_dispose_cancels_in_flight_submission(self):
        async def on_submit(args, ctx):
            await asyncio.Event().wait()

        coordinator = self.make(on_submit)
        task = coordinator.submit()
        await settle()

        coordinator.dispose()
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertFalse(coordinator.waiting)
        self.assertEqual(self.state().submit_count, 0)


class TestAutoSubmit(CoordinatorTestCase):
    async def test_single_change_submits_once(self):
        submitted = []

        async def on_submit(args, ctx):
            submitted.append(ctx.decoded["name"])

        coordinator = self.make(on_submit, mode={"onChange": {"debounce": 300, "autoSubmit": True}})
        self.set_value("name", "Bob")

        self.timer.advance(299)
        self.assertEqual(submitted, [])
        self.timer.advance(1)
        await coordinator.join()
        self.assertEqual(submitted, ["Bob"])

        # Completion updates submit_count and the snapshot, which must not look like an edit
        self.timer.advance(1000)
        await settle()
        self.assertEqual(submitted, ["Bob"])
        self.assertEqual(self.timer.pending, [])

    async def test_change_during_submission_submits_once_more(self):
        gate = asyncio.Event()
        submitted = []

        async def on_submit(args, ctx):
            submitted.append(ctx.decoded["name"])
            await gate.wait()

        coordinator = self.make(on_submit, mode={"onChange": {"debounce": 300, "autoSubmit": True}})
        self.set_value("name", "a")
        self.timer.advance(300)
        await settle()
        self.assertTrue(coordinator.waiting)

        self.set_value("name", "b")
        self.set_value("name", "c")
        self.assertTrue(coordinator.pending_changes)
        self.assertEqual(self.timer.pending, [])

        gate.set()
        await coordinator.join()
        self.assertFalse(coordinator.pending_changes)

        self.timer.advance(300)
        await coordinator.join()
        self.assertEqual(submitted, ["a", "c"])

        self.timer.advance(1000)
        await settle()
        self.assertEqual(submitted, ["a", "c"])

    async def test_without_auto_submit_changes_do_nothing(self):
        on_submit = MagicMock()
        self.make(on_submit, mode={"onChange": {"debounce": 300}})
        self.set_value("name", "Bob")
        self.timer.advance(1000)
        await settle()
        on_submit.assert_not_called()

    async def test_blur_submits_only_when_values_moved(self):
        submitted = []

        async def on_submit(args, ctx):
            submitted.append(ctx.decoded["name"])

        coordinator = self.make(on_submit, mode={"onBlur": {"autoSubmit": True}})
        coordinator.blur()
        self.assertIsNone(coordinator._task)

        self.set_value("name", "Bob")
        coordinator.blur()
        await coordinator.join()
        self.assertEqual(submitted, ["Bob"])

        coordinator.blur()
        await settle()
        self.assertEqual(submitted, ["Bob"])

        self.set_value("name", "Cy")
        coordinator.blur()
        await coordinator.join()
        self.assertEqual(submitted, ["Bob", "Cy"])
