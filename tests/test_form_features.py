import asyncio
import os
import sys
import unittest
from unittest.mock import MagicMock

# Ensure we can import the package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../')))

from formstate.exceptions import FieldNotFoundError, InvalidIndexError
from formstate.form import ArrayFieldHandle, FieldHandle, FormBuilder, make_form
from formstate.schema import String, filter, filter_async, min_length, non_empty_string
from tests.helpers import FakeTimer

LOGIN = (
    FormBuilder()
    .add_field("email", String().pipe(non_empty_string("Email is required")))
    .add_field("password", String().pipe(min_length(8, "Password must be at least 8 characters")))
)

ROW = FormBuilder().add_field("name", String().pipe(min_length(1, "Name required")))
ORDER = FormBuilder().add_field("title", String()).add_array("rows", ROW).add_array("tags", String())


def _names(form):
    return [row["name"] for row in form.values["rows"]]


class TestLoginScenario(unittest.IsolatedAsyncioTestCase):
    async def test_on_blur_validation_and_submit(self):
        submitted = []
        form = make_form(LOGIN, mode="onBlur", on_submit=lambda args, ctx: submitted.append(ctx.decoded))
        email = form.field("email")
        password = form.field("password")

        email.on_change("")
        self.assertIsNone(email.error)
        email.on_blur()
        self.assertTrue(email.is_touched)
        self.assertEqual(email.error, "Email is required")

        email.on_change("a@b.com")
        email.on_blur()
        self.assertIsNone(email.error)

        password.on_change("short")
        result = await form.submit_async()
        self.assertEqual(result.failure_kind, "decode")
        self.assertEqual(password.error, "Password must be at least 8 characters")
        self.assertEqual(form.submit_count, 0)
        self.assertEqual(submitted, [])

        password.on_change("long enough")
        result = await form.submit_async()
        self.assertTrue(result.is_success)
        self.assertEqual(form.submit_count, 1)
        self.assertEqual(submitted, [{"email": "a@b.com", "password": "long enough"}])
        self.assertIsNone(password.error)

    async def test_submit_marks_every_field_touched(self):
        form = make_form(ORDER, initial_values={"rows": [{"name": "a"}]})
        await form.submit_async()
        self.assertEqual(form.touched, {"title": True, "rows": [{"name": True}], "tags": []})

    async def test_revert_to_last_submit(self):
        form = make_form(LOGIN, on_submit=lambda args, ctx: None)
        form.set_value("email", "a@b.com")
        form.set_value("password", "password1")
        await form.submit_async()
        submitted = form.values
        snapshot = form.last_submitted_values

        form.set_value("email", "c@d.com")
        self.assertTrue(form.has_changed_since_submit)

        form.revert_to_last_submit()
        self.assertEqual(form.values, submitted)
        self.assertEqual(form.submit_count, 1)
        self.assertIs(form.last_submitted_values, snapshot)
        self.assertFalse(form.has_changed_since_submit)

    async def test_runtime_and_form_reach_the_submit_operation(self):
        seen = []

        async def on_submit(args, ctx):
            seen.append((args, ctx.runtime, ctx.form))
            return ctx.runtime.save(ctx.decoded)

        runtime = MagicMock()
        runtime.save.return_value = "id-1"
        form = make_form(LOGIN, on_submit=on_submit, runtime=runtime,
                         initial_values={"email": "a@b.com", "password": "password1"})
        result = await form.submit_async({"draft": False})

        self.assertEqual(result.value, "id-1")
        self.assertEqual(seen, [({"draft": False}, runtime, form)])
        runtime.save.assert_called_once_with({"email": "a@b.com", "password": "password1"})


class TestErrorPrecedence(unittest.IsolatedAsyncioTestCase):
    def make(self):
        builder = (
            FormBuilder()
            .add_field("password", String().pipe(min_length(8, "Too short")))
            .refine(lambda values, ctx: ctx.error("password", "Must not contain 'password'")
                    if "password" in values["password"] else None)
        )
        return make_form(builder, mode="onChange", on_submit=lambda args, ctx: None)

    async def test_refinement_error_persists_through_field_edits(self):
        form = self.make()
        field = form.field("password")
        field.on_change("password123")
        await form.submit_async()
        self.assertEqual(field.error, "Must not contain 'password'")
        self.assertEqual(form.errors["password"].source, "refinement")

        # A failing live validation wins over the stored cross-field error
        field.on_change("short")
        self.assertEqual(field.error, "Too short")

        # Passing live validation does not clear a cross-field error
        field.on_change("password1234")
        self.assertEqual(field.error, "Must not contain 'password'")

        field.on_change("correct horse")
        await form.submit_async()
        self.assertIsNone(field.error)
        self.assertEqual(form.errors, {})

    async def test_editing_clears_stored_field_error(self):
        form = self.make()
        field = form.field("password")
        field.on_change("short")
        await form.submit_async()
        self.assertEqual(form.errors["password"].source, "field")
        self.assertEqual(field.error, "Too short")

        field.on_change("long enough")
        self.assertNotIn("password", form.errors)
        self.assertIsNone(field.error)

    async def test_root_error(self):
        builder = (
            FormBuilder()
            .add_field("a", String())
            .add_field("b", String())
            .refine(lambda values, ctx: "Values must be different" if values["a"] == values["b"] else None)
        )
        form = make_form(builder, on_submit=lambda args, ctx: None)
        await form.submit_async()
        self.assertEqual(form.root_error, "Values must be different")

        form.set_value("b", "x")
        self.assertEqual(form.root_error, "Values must be different")
        await form.submit_async()
        self.assertIsNone(form.root_error)

    async def test_on_submit_mode_hides_errors_until_submit(self):
        form = make_form(LOGIN)
        email = form.field("email")
        email.on_change("x")
        email.on_change("")
        email.on_blur()
        self.assertIsNone(email.error)

        await form.submit_async()
        self.assertEqual(email.error, "Email is required")


class TestLiveValidation(unittest.IsolatedAsyncioTestCase):
    async def test_debounced_validation_on_change(self):
        timer = FakeTimer()
        builder = FormBuilder().add_field("name", String().pipe(min_length(1, "Name required")))
        form = make_form(builder, mode={"onChange": {"debounce": 200}}, timer=timer,
                         initial_values={"name": "ok"})
        field = form.field("name")

        field.on_change("")
        self.assertIsNone(form.validation("name"))
        timer.advance(199)
        self.assertIsNone(field.error)
        timer.advance(1)
        self.assertEqual(field.error, "Name required")

    async def test_async_validation_latest_run_wins(self):
        async def available(name):
            await asyncio.sleep(0.01)
            return "Username is taken" if name == "taken" else None

        builder = FormBuilder().add_field("username", String().pipe(filter_async(available)))
        form = make_form(builder, mode="onChange")
        field = form.field("username")

        field.on_change("taken")
        self.assertTrue(field.is_validating)
        field.on_change("free")
        await asyncio.sleep(0.05)

        self.assertFalse(field.is_validating)
        self.assertIsNone(field.error)

        field.on_change("taken")
        await asyncio.sleep(0.05)
        self.assertEqual(field.error, "Username is taken")


class TestArrays(unittest.IsolatedAsyncioTestCase):
    def make(self):
        return make_form(ORDER, initial_values={"rows": [{"name": "a"}, {"name": "b"}, {"name": "c"}]})

    async def test_array_handle_operations(self):
        form = self.make()
        rows = form.fields["rows"]
        self.assertIsInstance(rows, ArrayFieldHandle)

        rows.remove(1)
        self.assertEqual(_names(form), ["a", "c"])
        rows.append({"name": "d"})
        rows.swap(0, 2)
        self.assertEqual(_names(form), ["d", "c", "a"])
        rows.move(0, 2)
        self.assertEqual(_names(form), ["c", "a", "d"])

        with self.assertRaises(InvalidIndexError):
            rows.swap(0, 5)

    async def test_item_handles(self):
        form = self.make()
        rows = form.array("rows")
        item = rows.item(1)
        self.assertEqual(item.value, {"name": "b"})
        self.assertEqual(item["name"].value, "b")

        item.fields["name"].on_change("z")
        self.assertEqual(form.values["rows"][1]["name"], "z")

        item.remove()
        self.assertEqual(_names(form), ["a", "c"])
        self.assertEqual(len(list(rows)), 2)

        with self.assertRaises(FieldNotFoundError):
            item["missing"]

    async def test_scalar_arrays(self):
        form = self.make()
        tags = form.array("tags")
        tags.append()
        form.field("tags[0]").set_value("x")
        self.assertEqual(form.values["tags"], ["x"])

    async def test_row_errors_are_forgotten_when_rows_move(self):
        form = make_form(ORDER, initial_values={"rows": [{"name": ""}, {"name": "b"}]})
        await form.submit_async()
        self.assertEqual(form.errors["rows[0].name"].message, "Name required")

        form.array("rows").remove(0)
        self.assertEqual(form.errors, {})


class TestFormState(unittest.TestCase):
    def test_field_lookup(self):
        form = make_form(ORDER)
        self.assertIsInstance(form.get_field("title"), FieldHandle)
        self.assertIsInstance(form.get_field("rows"), ArrayFieldHandle)
        self.assertIsInstance(form.get_field("rows[0].name"), FieldHandle)
        with self.assertRaises(FieldNotFoundError):
            form.get_field("nope")
        with self.assertRaises(FieldNotFoundError):
            form.get_field("title.nested")
        with self.assertRaises(FieldNotFoundError):
            form.array("title")

    def test_set_value_with_updater(self):
        form = make_form(ORDER, initial_values={"title": "Hi"})
        form.set_value("title", lambda previous: previous + "!")
        self.assertEqual(form.values["title"], "Hi!")

    def test_dirty_tracking(self):
        form = make_form(ORDER, initial_values={"title": "Hi"})
        self.assertFalse(form.is_dirty)
        form.set_value("title", "Hello")
        self.assertTrue(form.is_dirty)
        self.assertTrue(form.field("title").is_dirty)
        form.set_value("title", "Hi")
        self.assertFalse(form.is_dirty)

    def test_set_values_replaces_initial_values(self):
        form = make_form(ORDER)
        form.set_value("title", "edited")
        form.set_values({"title": "loaded"})
        self.assertEqual(form.values["title"], "loaded")
        self.assertFalse(form.is_dirty)

    def test_reset(self):
        form = make_form(ORDER, initial_values={"title": "Hi"})
        form.set_value("title", "edited")
        form.blur("title")
        form.reset()
        self.assertEqual(form.values["title"], "Hi")
        self.assertFalse(form.field("title").is_touched)
        self.assertEqual(form.submit_count, 0)

    def test_subscribe_to_field_values(self):
        form = make_form(ORDER)
        changes = []
        unsubscribe = form.field("title").subscribe(lambda new, old: changes.append((old, new)))
        form.set_value("title", "a")
        form.set_value("rows", [])
        unsubscribe()
        form.set_value("title", "b")
        self.assertEqual(changes, [("", "a")])

    def test_make_form_from_a_dict_of_fields(self):
        form = make_form(fields={"name": String(), "rows": [ROW]})
        self.assertEqual(form.values, {"name": "", "rows": []})
        self.assertIsInstance(form.fields["rows"], ArrayFieldHandle)


class TestLeases(unittest.TestCase):
    def test_releasing_last_mount_resets_state(self):
        form = make_form(ORDER, initial_values={"title": "a"})
        first = form.mount()
        second = form.mount()
        form.set_value("title", "b")

        first.release()
        self.assertEqual(form.values["title"], "b")
        second.release()
        self.assertEqual(form.values["title"], "a")

    def test_keep_alive_option(self):
        form = make_form(ORDER, initial_values={"title": "a"}, keep_alive=True)
        with form.mount():
            form.set_value("title", "b")
        self.assertEqual(form.values["title"], "b")

    def test_keep_alive_lease(self):
        form = make_form(ORDER, initial_values={"title": "a"})
        keep = form.keep_alive()
        with form.mount():
            form.set_value("title", "b")
        self.assertEqual(form.values["title"], "b")

        keep.release()
        self.assertEqual(form.values["title"], "a")


class TestRevertClearsLiveErrors(unittest.IsolatedAsyncioTestCase):
    async def test_reverted_field_drops_error_of_discarded_edit(self):
        form = make_form(LOGIN, mode="onChange", on_submit=lambda args, ctx: None)
        email = form.field("email")
        email.on_change("a@b.com")
        form.set_value("password", "password1")
        result = await form.submit_async()
        self.assertTrue(result.is_success)

        email.on_change("")
        self.assertEqual(email.error, "Email is required")

        form.revert_to_last_submit()
        self.assertEqual(email.value, "a@b.com")
        self.assertIsNone(form.validation("email"))
        self.assertIsNone(email.error)

    async def test_revert_without_changes_keeps_live_results(self):
        form = make_form(LOGIN, mode="onChange", on_submit=lambda args, ctx: None,
                         initial_values={"email": "a@b.com", "password": "password1"})
        await form.submit_async()
        form.validate("email")
        slot = form.validation("email")

        form.revert_to_last_submit()
        self.assertIs(form.validation("email"), slot)


class TestDefects(unittest.TestCase):
    def test_sync_validator_defect_reaches_the_error_handler(self):
        def boom(value):
            raise RuntimeError("validator blew up")

        handler = MagicMock()
        builder = FormBuilder().add_field("name", String().pipe(filter(boom)))
        form = make_form(builder, mode="onChange", error_handler=handler)
        field = form.field("name")

        field.on_change("x")

        self.assertEqual(form.values["name"], "x")
        handler.assert_called_once()
        self.assertIsInstance(handler.call_args[0][0], RuntimeError)
        self.assertFalse(field.is_validating)
        self.assertIsNone(field.error)

    def test_submit_outside_an_event_loop_leaves_the_form_usable(self):
        form = make_form(LOGIN, on_submit=lambda args, ctx: None)
        with self.assertRaises(RuntimeError):
            form.submit()
        self.assertFalse(form.is_submitting)
        self.assertFalse(form.has_submitted)

        result = asyncio.run(form.submit_async())
        self.assertEqual(result.failure_kind, "decode")
        self.assertTrue(form.has_submitted)
