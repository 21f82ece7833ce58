from .ast import (
    Array,
    AsyncRefinement,
    Boolean,
    Class,
    FilterIssue,
    Literal,
    Number,
    ParseOptions,
    Refinement,
    Schema,
    String,
    Struct,
    Suspend,
    Transform,
    Tuple,
    Union,
    Unknown,
    filter,
    filter_async,
)
from .issues import (
    Composite,
    FormattedIssue,
    Forbidden,
    Missing,
    ParseError,
    ParseIssue,
    Pointer,
    RefinementIssue,
    TransformationIssue,
    TypeIssue,
    Unexpected,
    format_issues,
)
from .parser import decode, decode_either, decode_issue, decode_sync, requires_async
from .validator import (
    NumberFromString,
    Validator,
    between,
    email,
    greater_than_or_equal_to,
    less_than_or_equal_to,
    max_length,
    min_length,
    non_empty_string,
    number_from_string,
    pattern,
    trim,
    trimmed,
    url,
)
