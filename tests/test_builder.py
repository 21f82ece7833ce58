import unittest

from formstate.exceptions import DuplicateFieldError
from formstate.form.builder import EMPTY, FormBuilder, build_schema, is_form_builder
from formstate.form.field import (
    ArrayFieldDef,
    FieldDef,
    create_touched_record,
    get_default_encoded_values,
    is_array_field_def,
    is_field_def,
    make_array_field,
    make_field,
)
from formstate.form.validation import route_errors_with_source
from formstate.schema import NumberFromString, String, decode_either, decode_issue, decode_sync, min_length


class TestFieldDefs(unittest.TestCase):
    def test_make_field(self):
        field = make_field("email", String())
        self.assertTrue(is_field_def(field))
        self.assertFalse(is_array_field_def(field))
        self.assertEqual(field.tag, "field")

    def test_make_array_field_with_schema_or_form(self):
        tags = make_array_field("tags", String())
        self.assertTrue(is_array_field_def(tags))
        self.assertIsNotNone(tags.item_schema)

        rows = make_array_field("rows", FormBuilder().add_field("name", String()))
        self.assertIsNotNone(rows.item_form)
        self.assertIsNone(rows.item_schema)

    def test_array_def_needs_exactly_one_item(self):
        with self.assertRaises(ValueError):
            ArrayFieldDef("x")

    def test_default_encoded_values(self):
        builder = FormBuilder().add_field("name", String()).add_array("tags", String())
        self.assertEqual(get_default_encoded_values(builder.fields), {"name": "", "tags": []})

    def test_touched_record_follows_existing_items(self):
        item = FormBuilder().add_field("name", String())
        builder = FormBuilder().add_field("title", String()).add_array("rows", item).add_array("tags", String())
        values = {"title": "t", "rows": [{"name": "a"}, {"name": "b"}], "tags": ["x"]}
        self.assertEqual(
            create_touched_record(builder.fields, True, values),
            {"title": True, "rows": [{"name": True}, {"name": True}], "tags": [True]},
        )
        self.assertEqual(create_touched_record(builder.fields, False), {"title": False, "rows": [], "tags": []})


class TestFormBuilder(unittest.TestCase):
    def test_builders_are_immutable(self):
        base = FormBuilder()
        with_name = base.add_field("name", String())
        self.assertEqual(base.fields, {})
        self.assertEqual(list(with_name.fields), ["name"])
        self.assertIsNot(base, with_name)

    def test_field_order_is_preserved(self):
        builder = FormBuilder().add_field("b", String()).add_field(make_field("a", String())).add_array("c", String())
        self.assertEqual(list(builder.fields), ["b", "a", "c"])
        self.assertIsInstance(builder.fields["a"], FieldDef)

    def test_merge_concatenates(self):
        first = FormBuilder().add_field("a", String()).refine(lambda values, ctx: None)
        second = FormBuilder().add_field("b", String()).refine(lambda values, ctx: None)
        merged = first.merge(second)
        self.assertEqual(list(merged.fields), ["a", "b"])
        self.assertEqual(len(merged.refinements), 2)

    def test_merge_rejects_duplicate_keys(self):
        first = FormBuilder().add_field("a", String())
        with self.assertRaises(DuplicateFieldError) as caught:
            first.merge(FormBuilder().add_field("a", String()))
        self.assertEqual(caught.exception.key, "a")

    def test_type_guards(self):
        self.assertTrue(is_form_builder(EMPTY))
        self.assertFalse(is_form_builder({}))
        self.assertEqual(EMPTY.fields, {})


class TestBuildSchema(unittest.TestCase):
    def test_decodes_fields_and_rows(self):
        item = FormBuilder().add_field("qty", NumberFromString())
        builder = FormBuilder().add_field("name", String()).add_array("rows", item)
        decoded = decode_sync(build_schema(builder), {"name": "n", "rows": [{"qty": "2"}]})
        self.assertEqual(decoded, {"name": "n", "rows": [{"qty": 2}]})

    def test_refinements_run_in_order_and_stop_at_first_failure(self):
        calls = []

        def first(values, ctx):
            calls.append("first")
            return ctx.error("b", "first failed")

        def second(values, ctx):
            calls.append("second")

        builder = FormBuilder().add_field("a", String()).add_field("b", String()).refine(first).refine(second)
        ok, error = decode_either(build_schema(builder), {"a": "x", "b": "y"})
        self.assertFalse(ok)
        self.assertEqual(calls, ["first"])
        self.assertEqual(route_errors_with_source(error.issue)["b"].source, "refinement")

    def test_refinements_wait_for_field_errors(self):
        calls = []
        builder = (
            FormBuilder()
            .add_field("password", String().pipe(min_length(8, "Too short")))
            .refine(lambda values, ctx: calls.append(values))
        )
        ok, error = decode_either(build_schema(builder), {"password": "abc"})
        self.assertFalse(ok)
        self.assertEqual(calls, [])
        self.assertEqual(route_errors_with_source(error.issue)["password"].source, "field")

    def test_string_result_is_a_root_error(self):
        builder = FormBuilder().add_field("a", String()).refine(lambda values, ctx: "Nope")
        ok, error = decode_either(build_schema(builder), {"a": "x"})
        entry = route_errors_with_source(error.issue)[""]
        self.assertEqual((entry.message, entry.source), ("Nope", "refinement"))

    def test_nested_paths_in_refinement_errors(self):
        item = FormBuilder().add_field("name", String())
        builder = FormBuilder().add_array("rows", item).refine(
            lambda values, ctx: ctx.error("rows[1].name", "Duplicate name")
            if len({row["name"] for row in values["rows"]}) < len(values["rows"]) else None
        )
        ok, error = decode_either(build_schema(builder), {"rows": [{"name": "a"}, {"name": "a"}]})
        self.assertEqual(route_errors_with_source(error.issue)["rows[1].name"].message, "Duplicate name")


class TestAsyncRefine(unittest.IsolatedAsyncioTestCase):
    async def test_refine_async(self):
        async def available(values, ctx):
            if values["username"] == "taken":
                return ctx.error("username", "Username is taken")

        builder = FormBuilder().add_field("username", String()).refine_async(available)
        schema = build_schema(builder)

        ok, issue = await decode_issue(schema, {"username": "taken"})
        self.assertFalse(ok)
        entry = route_errors_with_source(issue)["username"]
        self.assertEqual((entry.message, entry.source), ("Username is taken", "refinement"))

        ok, value = await decode_issue(schema, {"username": "free"})
        self.assertTrue(ok)
        self.assertEqual(value, {"username": "free"})
