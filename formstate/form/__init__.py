from .builder import EMPTY, FormBuilder, RefinementContext, build_schema, is_form_builder
from .field import (
    ArrayFieldDef,
    FieldDef,
    create_touched_record,
    get_default_encoded_values,
    is_array_field_def,
    is_field_def,
    make_array_field,
    make_field,
)
from .form import (
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_MODE,
    ArrayFieldHandle,
    ArrayItemHandle,
    FieldHandle,
    Form,
    Lease,
    ValidationSlot,
    create_form,
    make_form,
)
from .mode import ValidationMode, parse_mode, should_show_error
from .path import (
    get_nested_value,
    is_path_or_parent_dirty,
    parse_path,
    schema_path_to_field_path,
    serialize_path,
    set_nested_value,
    to_path_string,
)
from .state import FormState, SubmittedValues
from .submission import SubmissionCoordinator, SubmitContext, SubmitPhase, SubmitResult
from .validation import ErrorEntry, extract_first_error, route_errors, route_errors_with_source
