from typing import Any, Dict, Optional, Union

from formstate.schema.ast import Schema


class FieldDef:
    """A single encoded value validated by ``schema``."""
    __slots__ = ('key', 'schema')
    tag = "field"

    def __init__(self, key: str, schema: Schema):
        self.key = key
        self.schema = schema

    def __repr__(self):
        return f"FieldDef({self.key!r}, {self.schema!r})"


class ArrayFieldDef:
    """
    An ordered list of items. Each item is either a bare encoded value
    (``item_schema``) or a nested field set (``item_form``, a FormBuilder).
    """
    __slots__ = ('key', 'item_schema', 'item_form')
    tag = "array"

    def __init__(self, key: str, item_schema: Optional[Schema] = None, item_form=None):
        if (item_schema is None) == (item_form is None):
            raise ValueError("ArrayFieldDef needs exactly one of item_schema or item_form")
        self.key = key
        self.item_schema = item_schema
        self.item_form = item_form

    def __repr__(self):
        item = self.item_form if self.item_form is not None else self.item_schema
        return f"ArrayFieldDef({self.key!r}, {item!r})"


AnyFieldDef = Union[FieldDef, ArrayFieldDef]


def is_field_def(value: Any) -> bool:
    return isinstance(value, FieldDef)


def is_array_field_def(value: Any) -> bool:
    return isinstance(value, ArrayFieldDef)


def make_field(key: str, schema: Schema) -> FieldDef:
    return FieldDef(key, schema)


def make_array_field(key: str, item) -> ArrayFieldDef:
    """``item`` is a schema or a FormBuilder describing one row."""
    from formstate.form.builder import is_form_builder

    if is_form_builder(item):
        return ArrayFieldDef(key, item_form=item)
    return ArrayFieldDef(key, item_schema=item)


def get_default_encoded_values(fields: Dict[str, AnyFieldDef]) -> Dict[str, Any]:
    """``""`` for every scalar field, ``[]`` for every array field."""
    result = {}
    for key, field_def in fields.items():
        result[key] = [] if is_array_field_def(field_def) else ""
    return result


def default_array_item(field_def: ArrayFieldDef) -> Any:
    """Empty encoded value for one new row of ``field_def``."""
    if field_def.item_form is not None:
        return get_default_encoded_values(field_def.item_form.fields)
    return ""


def create_touched_record(fields: Dict[str, AnyFieldDef], value: bool, values: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Builds a touched tree shaped like the form: a bool per scalar field and,
    per array field, one entry for each existing item in ``values``.
    """
    values = values or {}
    result = {}
    for key, field_def in fields.items():
        if is_array_field_def(field_def):
            items = values.get(key)
            items = items if isinstance(items, (list, tuple)) else []
            if field_def.item_form is not None:
                result[key] = [
                    create_touched_record(field_def.item_form.fields, value, item if isinstance(item, dict) else None)
                    for item in items
                ]
            else:
                result[key] = [value for _ in items]
        else:
            result[key] = value
    return result
