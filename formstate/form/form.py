import asyncio
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

from formstate.core import Signal, batch_updates
from formstate.exceptions import FieldNotFoundError, global_error_handler
from formstate.form import state as ops
from formstate.form.builder import FormBuilder, build_schema, is_form_builder
from formstate.form.field import AnyFieldDef, ArrayFieldDef, FieldDef, is_array_field_def
from formstate.form.mode import ON_BLUR, ON_CHANGE, ValidationMode, parse_mode, should_show_error
from formstate.form.path import Path, PathLike, get_nested_value, is_path_or_parent_dirty, parse_path, serialize_path
from formstate.form.state import FormState, SubmittedValues
from formstate.form.submission import SubmissionCoordinator, SubmitResult
from formstate.form.validation import FIELD, REFINEMENT, ROOT, ErrorEntry, extract_first_error
from formstate.schema.ast import ParseOptions, Schema
from formstate.schema.parser import decode_issue, requires_async, run_sync
from formstate.utils.async_task import cancel_async, run_async
from formstate.utils.debounce import Debounced, debounce

logger = logging.getLogger(__name__)

# Validation mode used when none is given
DEFAULT_MODE = "onSubmit"
# Delay in milliseconds before live validation runs; None validates immediately
DEFAULT_DEBOUNCE_MS = None

FieldRef = Union[str, Tuple, List, 'FieldHandle']


class ValidationSlot:
    """Live validation status of one field path."""
    __slots__ = ('is_validating', 'error', 'validated', 'run_id')

    def __init__(self, is_validating: bool = False, error: Optional[str] = None, validated: bool = False,
                 run_id: int = 0):
        self.is_validating = is_validating
        self.error = error
        self.validated = validated
        self.run_id = run_id

    @property
    def succeeded(self) -> bool:
        return self.validated and self.error is None

    def __repr__(self):
        return (f"ValidationSlot(is_validating={self.is_validating!r}, error={self.error!r}, "
                f"validated={self.validated!r}, run_id={self.run_id!r})")


class Lease:
    """Keeps a form alive until released; usable as a context manager."""

    def __init__(self, on_release: Callable[[], None]):
        self._on_release = on_release
        self.released = False

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        self._on_release()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


class FieldHandle:
    """
    Handle on one field of a form, bound to an explicit path.

    Reads go through the form every time, so a handle never goes stale.
    """

    def __init__(self, form: 'Form', path: PathLike):
        self.form = form
        self.segments: Path = parse_path(path)
        self.path = serialize_path(self.segments)

    @property
    def value(self) -> Any:
        return get_nested_value(self.form.values, self.segments)

    @property
    def initial_value(self) -> Any:
        return get_nested_value(self.form.initial_values, self.segments)

    @property
    def error(self) -> Optional[str]:
        return self.form.field_error(self.path)

    @property
    def is_touched(self) -> bool:
        return bool(get_nested_value(self.form.touched, self.segments))

    @property
    def is_validating(self) -> bool:
        slot = self.form.validation(self.path)
        return slot is not None and slot.is_validating

    @property
    def is_dirty(self) -> bool:
        return ops.is_dirty(self.form.state, self.segments)

    def on_change(self, value: Any) -> None:
        self.form.set_value(self.segments, value)

    set_value = on_change

    def on_blur(self) -> None:
        self.form.blur(self.segments)

    def subscribe(self, callback: Callable[[Any, Any], None]) -> Callable[[], None]:
        """Calls ``callback(new_value, old_value)`` when this field's value changes."""
        segments = self.segments
        return self.form.subscribe(lambda s: get_nested_value(s.values, segments), callback)

    def __repr__(self):
        return f"FieldHandle({self.path!r}, value={self.value!r})"


class ArrayItemHandle:
    """
    One row of an array field.

    ``fields`` maps each column key to its handle; rows of scalar arrays
    have no columns and are edited through ``set_value``.
    """

    def __init__(self, array: 'ArrayFieldHandle', index: int):
        self.array = array
        self.index = index
        self.segments: Path = array.segments + (index,)
        self.path = serialize_path(self.segments)
        self.fields: Dict[str, Union[FieldHandle, 'ArrayFieldHandle']] = {}
        item_form = array.field_def.item_form
        if item_form is not None:
            for key, field_def in item_form.fields.items():
                self.fields[key] = _make_handle(array.form, self.segments + (key,), field_def)

    @property
    def value(self) -> Any:
        return get_nested_value(self.array.form.values, self.segments)

    def set_value(self, value: Any) -> None:
        self.array.form.set_value(self.segments, value)

    def remove(self) -> None:
        self.array.remove(self.index)

    def __getitem__(self, key: str):
        try:
            return self.fields[key]
        except KeyError:
            raise FieldNotFoundError(f"{self.path}.{key}") from None

    def __repr__(self):
        return f"ArrayItemHandle({self.path!r})"


class ArrayFieldHandle:
    """Array field operations scoped to one array path."""

    def __init__(self, form: 'Form', path: PathLike, field_def: ArrayFieldDef):
        self.form = form
        self.segments: Path = parse_path(path)
        self.path = serialize_path(self.segments)
        self.field_def = field_def

    @property
    def items(self) -> list:
        return list(get_nested_value(self.form.values, self.segments) or [])

    def append(self, value: Any = None) -> None:
        self.form.append(self.segments, value)

    def remove(self, index: int) -> None:
        self.form.remove(self.segments, index)

    def swap(self, index_a: int, index_b: int) -> None:
        self.form.swap(self.segments, index_a, index_b)

    def move(self, from_index: int, to_index: int) -> None:
        self.form.move(self.segments, from_index, to_index)

    def item(self, index: int) -> ArrayItemHandle:
        return ArrayItemHandle(self, index)

    def __len__(self):
        return len(self.items)

    def __iter__(self) -> Iterator[ArrayItemHandle]:
        for index in range(len(self)):
            yield self.item(index)

    def __repr__(self):
        return f"ArrayFieldHandle({self.path!r}, items={self.items!r})"


def _make_handle(form: 'Form', path: PathLike, field_def: AnyFieldDef):
    if is_array_field_def(field_def):
        return ArrayFieldHandle(form, path, field_def)
    return FieldHandle(form, path)


class Form:
    """
    Form state engine.

    Holds the encoded values, touched flags, live validation results, routed
    errors and the submission lifecycle of one form instance. Rendering
    layers read state through properties and field handles and subscribe to
    changes with ``subscribe``.
    """

    def __init__(self, builder: FormBuilder, mode: Union[str, Dict, ValidationMode, None] = None,
                 on_submit: Optional[Callable] = None, runtime: Any = None, keep_alive: bool = False,
                 debounce_ms: Optional[int] = DEFAULT_DEBOUNCE_MS, initial_values: Optional[Dict[str, Any]] = None,
                 timer=None, error_handler: Callable = None):
        self.builder = builder
        self.mode = parse_mode(mode if mode is not None else DEFAULT_MODE)
        self.on_submit = on_submit
        self.runtime = runtime
        self.keep_alive_enabled = keep_alive
        self.schema = build_schema(builder)
        self._error_handler = error_handler or global_error_handler
        self._timer = timer
        self._live_debounce_ms = self.mode.debounce_ms if self.mode.debounce_ms is not None else debounce_ms

        self._defaults = initial_values
        self._state = Signal(ops.initial_state(builder.fields, initial_values), error_handler=self._error_handler)
        self._errors = Signal({}, error_handler=self._error_handler)
        self._validations = Signal({}, error_handler=self._error_handler)
        self._validation_tasks: Dict[str, asyncio.Future] = {}
        self._validators: Dict[str, Debounced] = {}
        self._submit_attempts = 0
        self._mounts = 0
        self._keep_alive_leases = 0
        self._disposed = False

        self._coordinator = self._create_coordinator()

        # Handles for the declared top-level fields, built once
        self.fields: Dict[str, Union[FieldHandle, ArrayFieldHandle]] = {
            key: _make_handle(self, (key,), field_def) for key, field_def in builder.fields.items()
        }

    def _create_coordinator(self) -> SubmissionCoordinator:
        return SubmissionCoordinator(
            self.schema,
            self._state,
            self.on_submit,
            self.mode,
            runtime=self.runtime,
            form=self,
            before_decode=self._before_decode,
            on_decode_failure=self._on_decode_failure,
            on_decode_success=self._on_decode_success,
            timer=self._timer,
            error_handler=self._error_handler,
        )

    # -- Reads ---

    @property
    def state(self) -> FormState:
        return self._state()

    @property
    def values(self) -> Dict[str, Any]:
        return self._state().values

    @property
    def initial_values(self) -> Dict[str, Any]:
        return self._state().initial_values

    @property
    def touched(self) -> Dict[str, Any]:
        return self._state().touched

    @property
    def submit_count(self) -> int:
        return self._state().submit_count

    @property
    def last_submitted_values(self) -> Optional[SubmittedValues]:
        return self._state().last_submitted_values

    @property
    def is_dirty(self) -> bool:
        return ops.is_dirty(self._state())

    @property
    def has_changed_since_submit(self) -> bool:
        return ops.has_changed_since_submit(self._state())

    @property
    def dirty_paths(self):
        return ops.dirty_paths(self._state())

    def is_path_dirty(self, path: PathLike) -> bool:
        """Dirty indicator for containers: ``path`` or one of its parents is dirty."""
        return is_path_or_parent_dirty(self.dirty_paths, path)

    @property
    def submit_result(self) -> SubmitResult:
        return self._coordinator.result()

    @property
    def is_submitting(self) -> bool:
        return self._coordinator.waiting

    @property
    def errors(self) -> Dict[str, ErrorEntry]:
        return dict(self._errors())

    @property
    def root_error(self) -> Optional[str]:
        entry = self._errors().get(ROOT)
        return entry.message if entry is not None else None

    @property
    def has_submitted(self) -> bool:
        return self._submit_attempts > 0

    def validation(self, path: PathLike) -> Optional[ValidationSlot]:
        return self._validations().get(serialize_path(parse_path(path)))

    def raw_field_error(self, path: PathLike) -> Optional[str]:
        """
        Error of ``path`` before the display policy is applied.

        A failing live validation wins. A stored field error is hidden while
        the field validates or after it validated successfully; a stored
        refinement error stays until the next full decode.
        """
        key = serialize_path(parse_path(path))
        slot = self._validations().get(key)
        if slot is not None and slot.error is not None:
            return slot.error

        entry = self._errors().get(key)
        if entry is None:
            return None
        if entry.source == FIELD and slot is not None and (slot.is_validating or slot.succeeded):
            return None
        return entry.message

    def field_error(self, path: PathLike) -> Optional[str]:
        segments = parse_path(path)
        state = self._state()
        visible = should_show_error(
            self.mode,
            is_dirty=ops.is_dirty(state, segments),
            is_touched=bool(get_nested_value(state.touched, segments)),
            has_submitted=self.has_submitted,
        )
        return self.raw_field_error(segments) if visible else None

    # -- Field lookup ---

    def _field_def_at(self, segments: Path) -> Union[AnyFieldDef, Schema]:
        """Declared definition for ``segments``; a bare schema for rows of scalar arrays."""
        fields = self.builder.fields
        current: Union[AnyFieldDef, Schema, None] = None
        index = 0
        while index < len(segments):
            segment = segments[index]
            if fields is None or not isinstance(segment, str) or segment not in fields:
                raise FieldNotFoundError(serialize_path(segments))
            current = fields[segment]
            fields = None
            index += 1
            if is_array_field_def(current) and index < len(segments):
                if not isinstance(segments[index], int):
                    raise FieldNotFoundError(serialize_path(segments))
                index += 1
                if current.item_form is not None:
                    fields = current.item_form.fields
                    if index == len(segments):
                        return current
                else:
                    current = current.item_schema
        if current is None:
            raise FieldNotFoundError(serialize_path(segments))
        return current

    def _field_schema(self, segments: Path) -> Optional[Schema]:
        definition = self._field_def_at(segments)
        if isinstance(definition, FieldDef):
            return definition.schema
        if isinstance(definition, Schema):
            return definition
        return None

    def _resolve(self, field_ref: FieldRef) -> Path:
        if isinstance(field_ref, (FieldHandle, ArrayFieldHandle, ArrayItemHandle)):
            return field_ref.segments
        segments = parse_path(field_ref)
        self._field_def_at(segments)
        return segments

    def field(self, field_ref: FieldRef) -> Union[FieldHandle, ArrayFieldHandle]:
        segments = self._resolve(field_ref)
        definition = self._field_def_at(segments)
        if isinstance(definition, ArrayFieldDef) and not isinstance(segments[-1], int):
            return ArrayFieldHandle(self, segments, definition)
        return FieldHandle(self, segments)

    get_field = field

    def array(self, field_ref: FieldRef) -> ArrayFieldHandle:
        handle = self.field(field_ref)
        if not isinstance(handle, ArrayFieldHandle):
            raise FieldNotFoundError(f"{handle.path} (not an array field)")
        return handle

    # -- Mutations ---

    def subscribe(self, selector: Optional[Callable[[FormState], Any]], callback: Callable[[Any, Any], None],
                  equals: Callable[[Any, Any], bool] = None) -> Callable[[], None]:
        """Subscribes to slices of the form state; see ``Signal.subscribe``."""
        return self._state.subscribe(selector, callback, equals)

    def subscribe_errors(self, callback: Callable[[Dict[str, ErrorEntry], Dict[str, ErrorEntry]], None]):
        return self._errors.subscribe(None, callback)

    def subscribe_submit_result(self, callback: Callable[[SubmitResult, SubmitResult], None]):
        return self._coordinator.result.subscribe(None, callback)

    def set_value(self, field_ref: FieldRef, value: Any) -> None:
        """Sets a field's encoded value; a callable is applied to the current value."""
        segments = self._resolve(field_ref)
        if callable(value):
            value = value(get_nested_value(self.values, segments))
        self._state.set(lambda state: ops.set_value(state, segments, value))
        self._clear_field_error(serialize_path(segments))
        if self.mode.trigger == ON_CHANGE:
            self._schedule_validation(segments)

    def blur(self, field_ref: FieldRef) -> None:
        segments = self._resolve(field_ref)
        self._state.set(lambda state: ops.set_touched(state, segments, True))
        if self.mode.trigger == ON_BLUR:
            self.validate(segments)
        self._coordinator.blur()

    def set_values(self, values: Dict[str, Any]) -> None:
        """Replaces values and initial values with ``values``; touched flags and errors reset."""
        state = ops.initial_state(self.builder.fields, values)
        self._cancel_validations()

        def perform_updates():
            self._state.set(lambda previous: state.replace(
                submit_count=previous.submit_count,
                last_submitted_values=previous.last_submitted_values,
            ))
            self._errors.set({})
            self._validations.set({})

        batch_updates(perform_updates, self._state, self._errors, self._validations)

    def initialize(self, values: Optional[Dict[str, Any]] = None) -> None:
        """Loads the form from scratch with ``values`` as defaults."""
        self._defaults = values
        self._reinitialize()

    def _reinitialize(self) -> None:
        self._cancel_validations()
        self._submit_attempts = 0
        self._state.set(ops.initial_state(self.builder.fields, self._defaults))
        self._errors.set({})
        self._validations.set({})

    def append(self, field_ref: FieldRef, value: Any = None) -> None:
        segments, field_def = self._array_at(field_ref)
        self._state.set(lambda state: ops.append_array_item(state, segments, field_def, value))

    def remove(self, field_ref: FieldRef, index: int) -> None:
        segments, _ = self._array_at(field_ref)
        self._apply_array_op(segments, lambda state: ops.remove_array_item(state, segments, index))

    def swap(self, field_ref: FieldRef, index_a: int, index_b: int) -> None:
        segments, _ = self._array_at(field_ref)
        self._apply_array_op(segments, lambda state: ops.swap_array_items(state, segments, index_a, index_b))

    def move(self, field_ref: FieldRef, from_index: int, to_index: int) -> None:
        segments, _ = self._array_at(field_ref)
        self._apply_array_op(segments, lambda state: ops.move_array_item(state, segments, from_index, to_index))

    def _array_at(self, field_ref: FieldRef) -> Tuple[Path, ArrayFieldDef]:
        handle = self.array(field_ref)
        return handle.segments, handle.field_def

    def _apply_array_op(self, segments: Path, operation: Callable[[FormState], FormState]) -> None:
        # Validate indices first; errors and slots keyed by row index are stale afterwards
        next_state = operation(self._state())
        if next_state is self._state():
            return
        self._forget_under(serialize_path(segments))
        self._state.set(next_state)

    def reset(self) -> None:
        """Back to the initial values; errors cleared, submit history kept."""
        self._cancel_validations()
        self._submit_attempts = 0
        self._state.set(lambda state: ops.reset(state, self.builder.fields))
        self._errors.set({})
        self._validations.set({})

    def revert_to_last_submit(self) -> None:
        """Restores the last submitted values; live results and field errors of the reverted paths are dropped."""
        previous = self._state()
        reverted = ops.revert_to_last_submit(previous, self.builder.fields)
        if reverted is previous:
            return
        changed = ops.changed_paths(reverted.values, previous.values)

        def stale(key: str) -> bool:
            return key in changed or any(key.startswith(path + "[") or key.startswith(path + ".") for path in changed)

        for key in [key for key in self._validation_tasks if stale(key)]:
            cancel_async(self._validation_tasks.pop(key))
        for key in [key for key in self._validators if stale(key)]:
            self._validators.pop(key).cancel()

        def perform_updates():
            self._state.set(reverted)
            self._errors.set(lambda errors: {
                k: v for k, v in errors.items() if v.source != FIELD or not stale(k)
            })
            self._validations.set(lambda slots: {k: v for k, v in slots.items() if not stale(k)})

        batch_updates(perform_updates, self._state, self._errors, self._validations)

    # -- Validation ---

    def _schedule_validation(self, segments: Path) -> None:
        if self._field_schema(segments) is None:
            return
        key = serialize_path(segments)
        self._validators[key] = debounce(
            lambda: self.validate(segments),
            self._live_debounce_ms,
            previous=self._validators.get(key),
            timer=self._timer,
            error_handler=self._error_handler,
        )
        self._validators[key]()

    def validate(self, field_ref: FieldRef) -> Optional[asyncio.Future]:
        """
        Validates one field against its own schema.

        Runs synchronously when the schema has no async steps; otherwise
        returns the task. Only the latest run of a path writes its result.
        """
        segments = self._resolve(field_ref)
        schema = self._field_schema(segments)
        if schema is None:
            return None

        key = serialize_path(segments)
        value = get_nested_value(self.values, segments)
        previous = self._validations().get(key)
        run_id = (previous.run_id if previous is not None else 0) + 1
        cancel_async(self._validation_tasks.pop(key, None))

        if not requires_async(schema):
            try:
                result = run_sync(schema, value, ParseOptions(is_sync=True))
            except Exception as e:
                self._validation_defect(key, run_id, e)
                return None
            self._write_validation(key, run_id, result)
            return None

        logger.debug("Validating '%s' asynchronously (run %s)", key, run_id)
        self._set_slot(key, ValidationSlot(
            is_validating=True,
            error=previous.error if previous is not None else None,
            validated=previous.validated if previous is not None else False,
            run_id=run_id,
        ))
        task = run_async(
            decode_issue,
            (schema, value),
            on_success=lambda result: self._write_validation(key, run_id, result),
            on_error=lambda e: self._validation_defect(key, run_id, e),
        )
        self._validation_tasks[key] = task
        return task

    def _write_validation(self, key: str, run_id: int, result: Tuple[bool, Any]) -> None:
        current = self._validations().get(key)
        if current is not None and current.run_id > run_id:
            return
        ok, issue = result
        error = None if ok else extract_first_error(issue)
        self._set_slot(key, ValidationSlot(is_validating=False, error=error, validated=True, run_id=run_id))
        self._validation_tasks.pop(key, None)

    def _validation_defect(self, key: str, run_id: int, error: Exception) -> None:
        self._error_handler(error, f"Unexpected error validating '{key}'")
        current = self._validations().get(key)
        if current is None or current.run_id <= run_id:
            # No verdict for this value
            self._set_slot(key, ValidationSlot(is_validating=False, run_id=run_id))
            self._validation_tasks.pop(key, None)

    def _set_slot(self, key: str, slot: ValidationSlot) -> None:
        def update(slots):
            slots = dict(slots)
            slots[key] = slot
            return slots

        self._validations.set(update)

    def _clear_field_error(self, key: str) -> None:
        entry = self._errors().get(key)
        if entry is None or entry.source != FIELD:
            return

        def update(errors):
            errors = dict(errors)
            del errors[key]
            return errors

        self._errors.set(update)

    def _forget_under(self, prefix: str) -> None:
        def under(key: str) -> bool:
            return key.startswith(prefix + "[")

        for key in [key for key in self._validation_tasks if under(key)]:
            cancel_async(self._validation_tasks.pop(key))
        for key in [key for key in self._validators if under(key)]:
            self._validators.pop(key).cancel()
        self._errors.set(lambda errors: {k: v for k, v in errors.items() if not under(k)})
        self._validations.set(lambda slots: {k: v for k, v in slots.items() if not under(k)})

    def _cancel_validations(self) -> None:
        for task in self._validation_tasks.values():
            cancel_async(task)
        self._validation_tasks.clear()
        for validator in self._validators.values():
            validator.cancel()
        self._validators.clear()

    # -- Submission ---

    def _before_decode(self) -> None:
        self._submit_attempts += 1
        self._state.set(lambda state: ops.touch_all(state, self.builder.fields))
        self._errors.set(lambda errors: {k: v for k, v in errors.items() if v.source != REFINEMENT})

    def _on_decode_failure(self, errors: Dict[str, ErrorEntry]) -> None:
        self._errors.set(errors)
        # Live results would hide the fresh decode errors
        self._validations.set(lambda slots: {
            key: slot for key, slot in slots.items() if key not in errors or slot.is_validating
        })

    def _on_decode_success(self) -> None:
        self._errors.set({})

    def submit(self, args: Any = None) -> Optional[asyncio.Future]:
        """Starts a submission; returns its task (the in-flight one if already submitting)."""
        return self._coordinator.submit(args)

    async def submit_async(self, args: Any = None) -> Optional[SubmitResult]:
        task = self.submit(args)
        if task is None:
            return None
        return await task

    async def join(self) -> None:
        await self._coordinator.join()

    # -- Lifecycle ---

    def mount(self) -> Lease:
        """Registers a consumer; when the last one releases, the form tears down unless kept alive."""
        self._mounts += 1
        return Lease(self._unmount)

    def keep_alive(self) -> Lease:
        """Holds the form's state across unmounts until released."""
        self._keep_alive_leases += 1
        return Lease(self._release_keep_alive)

    def _unmount(self) -> None:
        self._mounts -= 1
        self._maybe_teardown()

    def _release_keep_alive(self) -> None:
        self._keep_alive_leases -= 1
        self._maybe_teardown()

    def _maybe_teardown(self) -> None:
        if self._mounts > 0 or self._keep_alive_leases > 0 or self.keep_alive_enabled:
            return
        logger.debug("Last lease released; tearing down form state")
        self._coordinator.dispose()
        self._reinitialize()
        self._coordinator = self._create_coordinator()

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._coordinator.dispose()
        self._cancel_validations()
        self._state.dispose()
        self._errors.dispose()
        self._validations.dispose()

    def __repr__(self):
        return f"Form(fields={list(self.builder.fields)!r}, mode={self.mode!r})"


def make_form(builder: Union[FormBuilder, Dict[str, Schema], None] = None, fields: Optional[Dict[str, Any]] = None,
              mode: Union[str, Dict, ValidationMode, None] = None, on_submit: Optional[Callable] = None,
              runtime: Any = None, keep_alive: bool = False, debounce_ms: Optional[int] = DEFAULT_DEBOUNCE_MS,
              initial_values: Optional[Dict[str, Any]] = None, timer=None,
              error_handler: Callable = None) -> Form:
    """
    Factory function to create a form.

    Args:
        builder: A FormBuilder, or a dict of field key to schema
        fields: Alternative to ``builder``: a dict of field key to schema, field def or FormBuilder (array of rows)
        mode: Validation mode, see ``parse_mode``; defaults to ``DEFAULT_MODE``
        on_submit: ``on_submit(args, ctx)`` called with decoded values in ``ctx.decoded``
        runtime: Passed through to the submit operation as ``ctx.runtime``
        keep_alive: Keep state when the last mount is released
        debounce_ms: Live validation delay when the mode sets none
        initial_values: Default encoded values
        timer: Timer service used for debouncing
        error_handler: Receives unexpected errors; defaults to ``global_error_handler``

    Returns:
        A Form instance
    """
    if builder is None and fields is None:
        raise ValueError("make_form needs a builder or fields")
    if builder is not None and fields is not None:
        raise ValueError("Pass either a builder or fields, not both")

    source = builder if builder is not None else fields
    if not is_form_builder(source):
        form_builder = FormBuilder()
        for key, definition in source.items():
            if isinstance(definition, (FieldDef, ArrayFieldDef)):
                form_builder = form_builder.add_field(definition)
            elif isinstance(definition, list) and len(definition) == 1:
                # [item] declares an array of rows
                form_builder = form_builder.add_array(key, definition[0])
            else:
                form_builder = form_builder.add_field(key, definition)
        source = form_builder

    return Form(
        source,
        mode=mode,
        on_submit=on_submit,
        runtime=runtime,
        keep_alive=keep_alive,
        debounce_ms=debounce_ms,
        initial_values=initial_values,
        timer=timer,
        error_handler=error_handler,
    )


create_form = make_form
