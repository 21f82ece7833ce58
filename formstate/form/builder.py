from typing import Any, Callable, Dict, Optional, Tuple, Union

from formstate.exceptions import DuplicateFieldError
from formstate.form.field import AnyFieldDef, ArrayFieldDef, FieldDef, make_array_field, make_field
from formstate.form.path import PathLike, parse_path
from formstate.schema.ast import Array, AsyncRefinement, FilterIssue, Refinement, Schema, Struct

SYNC = "sync"
ASYNC = "async"


class RefinementContext:
    """Passed to refinement functions to build path-located failures."""

    def error(self, path: PathLike, message: str) -> FilterIssue:
        return FilterIssue(parse_path(path), message)

    def root_error(self, message: str) -> FilterIssue:
        return FilterIssue((), message)


_context = RefinementContext()


class FormBuilder:
    """
    Immutable, ordered description of a form.

    Every method returns a new builder::

        login = (
            FormBuilder()
            .add_field("email", String().pipe(email()))
            .add_field("password", String().pipe(min_length(8)))
            .refine(lambda values, ctx: ...)
        )
    """
    __slots__ = ('fields', 'refinements')

    def __init__(self, fields: Optional[Dict[str, AnyFieldDef]] = None,
                 refinements: Tuple[Tuple[str, Callable], ...] = ()):
        self.fields: Dict[str, AnyFieldDef] = dict(fields or {})
        self.refinements = tuple(refinements)

    def _with(self, fields=None, refinements=None) -> 'FormBuilder':
        return FormBuilder(
            self.fields if fields is None else fields,
            self.refinements if refinements is None else refinements,
        )

    def add_field(self, field: Union[str, FieldDef, ArrayFieldDef], schema: Optional[Schema] = None) -> 'FormBuilder':
        """Adds ``make_field(key, schema)`` or an already built field def."""
        if isinstance(field, str):
            if schema is None:
                raise ValueError(f"Field '{field}' needs a schema")
            field = make_field(field, schema)
        fields = dict(self.fields)
        fields[field.key] = field
        return self._with(fields=fields)

    def add_array(self, field: Union[str, ArrayFieldDef], item: Any = None) -> 'FormBuilder':
        """Adds an array field whose items follow ``item`` (a schema or a FormBuilder)."""
        if isinstance(field, str):
            if item is None:
                raise ValueError(f"Array field '{field}' needs an item schema or form")
            field = make_array_field(field, item)
        return self.add_field(field)

    def merge(self, other: 'FormBuilder') -> 'FormBuilder':
        """Concatenates fields and refinements; a key defined on both sides is rejected."""
        duplicates = [key for key in other.fields if key in self.fields]
        if duplicates:
            raise DuplicateFieldError(duplicates[0])
        fields = dict(self.fields)
        fields.update(other.fields)
        return self._with(fields=fields, refinements=self.refinements + other.refinements)

    def refine(self, fn: Callable[[Dict[str, Any], RefinementContext], Any]) -> 'FormBuilder':
        """
        Adds a cross-field rule run against the decoded values.

        ``fn(values, ctx)`` returns None to pass, a message for a root-level
        failure, or ``ctx.error(path, message)`` to fail a specific field.
        """
        return self._with(refinements=self.refinements + ((SYNC, fn),))

    def refine_async(self, fn: Callable[[Dict[str, Any], RefinementContext], Any]) -> 'FormBuilder':
        """Like ``refine`` but ``fn`` is a coroutine function."""
        return self._with(refinements=self.refinements + ((ASYNC, fn),))

    def __repr__(self):
        return f"FormBuilder(fields={list(self.fields)!r}, refinements={len(self.refinements)})"


EMPTY = FormBuilder()


def is_form_builder(value: Any) -> bool:
    return isinstance(value, FormBuilder)


def _field_schema(field: AnyFieldDef) -> Schema:
    if isinstance(field, ArrayFieldDef):
        if field.item_form is not None:
            return Array(build_schema(field.item_form))
        return Array(field.item_schema)
    return field.schema


def build_schema(builder: FormBuilder) -> Schema:
    """
    Struct of every field's schema, wrapped by each refinement in
    registration order; a refinement only runs once everything inside it
    decoded successfully.
    """
    schema: Schema = Struct({key: _field_schema(field) for key, field in builder.fields.items()})

    for kind, fn in builder.refinements:
        predicate = (lambda refine_fn: lambda values: refine_fn(values, _context))(fn)
        if kind == ASYNC:
            schema = AsyncRefinement(schema, predicate)
        else:
            schema = Refinement(schema, predicate)
    return schema
