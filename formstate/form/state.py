"""
Form state and its pure transitions.

Every operation returns a new FormState; untouched branches of the value
trees are shared with the previous state, so identity comparison tells
whether anything changed.
"""
from typing import Any, Dict, Optional, Set

from formstate.exceptions import InvalidIndexError
from formstate.form.field import (
    AnyFieldDef,
    ArrayFieldDef,
    create_touched_record,
    default_array_item,
    get_default_encoded_values,
)
from formstate.form.path import PathLike, get_nested_value, parse_path, serialize_path, set_nested_value

_MISSING = object()


class SubmittedValues:
    """Snapshot of a successful submit: encoded values and what they decoded to."""
    __slots__ = ('encoded', 'decoded')

    def __init__(self, encoded: Any, decoded: Any):
        self.encoded = encoded
        self.decoded = decoded

    def __eq__(self, other):
        if not isinstance(other, SubmittedValues):
            return NotImplemented
        return self.encoded == other.encoded and self.decoded == other.decoded

    def __repr__(self):
        return f"SubmittedValues(encoded={self.encoded!r}, decoded={self.decoded!r})"


class FormState:
    __slots__ = ('values', 'initial_values', 'touched', 'submit_count', 'last_submitted_values')

    def __init__(self, values: Dict[str, Any], initial_values: Dict[str, Any], touched: Dict[str, Any],
                 submit_count: int = 0, last_submitted_values: Optional[SubmittedValues] = None):
        self.values = values
        self.initial_values = initial_values
        self.touched = touched
        self.submit_count = submit_count
        self.last_submitted_values = last_submitted_values

    def replace(self, **changes) -> 'FormState':
        fields = {name: getattr(self, name) for name in self.__slots__}
        fields.update(changes)
        return FormState(**fields)

    def __repr__(self):
        return (f"FormState(values={self.values!r}, submit_count={self.submit_count!r}, "
                f"last_submitted_values={self.last_submitted_values!r})")


def initial_state(fields: Dict[str, AnyFieldDef], values: Optional[Dict[str, Any]] = None) -> FormState:
    """State for a freshly loaded form; missing keys get their empty encoded value."""
    merged = get_default_encoded_values(fields)
    if values:
        merged.update(values)
    return FormState(
        values=merged,
        initial_values=merged,
        touched=create_touched_record(fields, False, merged),
    )


def _same(a: Any, b: Any) -> bool:
    return a is b or (type(a) is type(b) and a == b)


def set_value(state: FormState, path: PathLike, value: Any) -> FormState:
    if _same(get_nested_value(state.values, path), value):
        return state
    return state.replace(values=set_nested_value(state.values, path, value))


def set_touched(state: FormState, path: PathLike, touched: bool = True) -> FormState:
    if get_nested_value(state.touched, path) is touched:
        return state
    return state.replace(touched=set_nested_value(state.touched, path, touched))


def touch_all(state: FormState, fields: Dict[str, AnyFieldDef]) -> FormState:
    return state.replace(touched=create_touched_record(fields, True, state.values))


def _items(tree: Any, path: PathLike) -> list:
    items = get_nested_value(tree, path)
    return list(items) if isinstance(items, (list, tuple)) else []


def _touched_items(state: FormState, path: PathLike, length: int) -> list:
    touched = _items(state.touched, path)
    while len(touched) < length:
        touched.append(False)
    return touched[:length]


def _default_touched_item(field_def: ArrayFieldDef, item: Any) -> Any:
    if field_def.item_form is not None:
        return create_touched_record(field_def.item_form.fields, False, item if isinstance(item, dict) else None)
    return False


def _with_arrays(state: FormState, path: PathLike, items: list, touched: list) -> FormState:
    return state.replace(
        values=set_nested_value(state.values, path, items),
        touched=set_nested_value(state.touched, path, touched),
    )


def append_array_item(state: FormState, path: PathLike, field_def: ArrayFieldDef, value: Any = _MISSING) -> FormState:
    """Appends ``value``, or an empty row when no value is given."""
    items = _items(state.values, path)
    touched = _touched_items(state, path, len(items))
    item = default_array_item(field_def) if value is _MISSING or value is None else value
    items.append(item)
    touched.append(_default_touched_item(field_def, item))
    return _with_arrays(state, path, items, touched)


def remove_array_item(state: FormState, path: PathLike, index: int) -> FormState:
    """Removes the item at ``index``; an out-of-range index leaves the state unchanged."""
    items = _items(state.values, path)
    if index < 0 or index >= len(items):
        return state
    touched = _touched_items(state, path, len(items))
    del items[index]
    del touched[index]
    return _with_arrays(state, path, items, touched)


def _check_index(path: PathLike, index: int, length: int):
    if not isinstance(index, int) or index < 0 or index >= length:
        raise InvalidIndexError(serialize_path(parse_path(path)), index, length)


def swap_array_items(state: FormState, path: PathLike, index_a: int, index_b: int) -> FormState:
    items = _items(state.values, path)
    _check_index(path, index_a, len(items))
    _check_index(path, index_b, len(items))
    if index_a == index_b:
        return state
    touched = _touched_items(state, path, len(items))
    items[index_a], items[index_b] = items[index_b], items[index_a]
    touched[index_a], touched[index_b] = touched[index_b], touched[index_a]
    return _with_arrays(state, path, items, touched)


def move_array_item(state: FormState, path: PathLike, from_index: int, to_index: int) -> FormState:
    """Removes the item at ``from_index`` and reinserts it at ``to_index`` of the shortened list."""
    items = _items(state.values, path)
    _check_index(path, from_index, len(items))
    _check_index(path, to_index, len(items))
    if from_index == to_index:
        return state
    touched = _touched_items(state, path, len(items))
    items.insert(to_index, items.pop(from_index))
    touched.insert(to_index, touched.pop(from_index))
    return _with_arrays(state, path, items, touched)


def reset(state: FormState, fields: Dict[str, AnyFieldDef]) -> FormState:
    """Back to the initial values with nothing touched; submit history is kept."""
    return state.replace(
        values=state.initial_values,
        touched=create_touched_record(fields, False, state.initial_values),
    )


def _fit_touched(fields: Dict[str, AnyFieldDef], touched: Any, values: Any) -> Dict[str, Any]:
    touched = touched if isinstance(touched, dict) else {}
    values = values if isinstance(values, dict) else {}
    result = {}
    for key, field_def in fields.items():
        flag = touched.get(key)
        if isinstance(field_def, ArrayFieldDef):
            items = values.get(key)
            items = items if isinstance(items, (list, tuple)) else []
            flags = flag if isinstance(flag, list) else []
            rows = []
            for index, item in enumerate(items):
                previous = flags[index] if index < len(flags) else None
                if field_def.item_form is not None:
                    rows.append(_fit_touched(field_def.item_form.fields, previous, item))
                else:
                    rows.append(bool(previous))
            result[key] = rows
        else:
            result[key] = bool(flag)
    return result


def revert_to_last_submit(state: FormState, fields: Optional[Dict[str, AnyFieldDef]] = None) -> FormState:
    """
    Restores the values of the last successful submit.

    With ``fields`` given, touched entries of array rows are fitted to the
    restored lengths; flags of surviving rows are kept.
    """
    if state.last_submitted_values is None:
        return state
    values = state.last_submitted_values.encoded
    if values is state.values:
        return state
    if fields is None:
        return state.replace(values=values)
    return state.replace(values=values, touched=_fit_touched(fields, state.touched, values))


def is_dirty(state: FormState, path: Optional[PathLike] = None) -> bool:
    """Whether ``path`` (or the whole form) differs from the initial values."""
    if path is None:
        return state.values != state.initial_values
    return get_nested_value(state.values, path) != get_nested_value(state.initial_values, path)


def changed_paths(current_values: Any, previous_values: Any) -> Set[str]:
    """Every path string whose value differs between the two trees, containers included."""
    result: Set[str] = set()

    def mark(segments):
        for end in range(len(segments), 0, -1):
            result.add(serialize_path(segments[:end]))

    def walk(current, initial, segments):
        if isinstance(current, dict) and isinstance(initial, dict):
            for key in list(current) + [key for key in initial if key not in current]:
                walk(current.get(key), initial.get(key), segments + (key,))
        elif isinstance(current, (list, tuple)) and isinstance(initial, (list, tuple)):
            for index in range(max(len(current), len(initial))):
                walk(
                    current[index] if index < len(current) else None,
                    initial[index] if index < len(initial) else None,
                    segments + (index,),
                )
            if len(current) != len(initial) and segments:
                mark(segments)
        elif current != initial:
            mark(segments)

    walk(current_values, previous_values, ())
    return result


def dirty_paths(state: FormState) -> Set[str]:
    """Every dirty path string, containers included."""
    return changed_paths(state.values, state.initial_values)


def has_changed_since_submit(state: FormState) -> bool:
    """False until a submit succeeds; afterwards whether values moved away from it."""
    if state.last_submitted_values is None:
        return False
    return state.values != state.last_submitted_values.encoded
