"""
Maps decode issue trees onto field paths.

Each routed error records whether it came from a field's own constraint
("field") or from a cross-field rule over the whole form ("refinement").
"""
from typing import Dict, Optional, Tuple

from formstate.form.path import Segment, serialize_path
from formstate.schema.ast import is_composite_type
from formstate.schema.issues import ParseIssue, format_issues, get_message

FIELD = "field"
REFINEMENT = "refinement"

ROOT = ""


class ErrorEntry:
    __slots__ = ('message', 'source')

    def __init__(self, message: str, source: str = FIELD):
        self.message = message
        self.source = source

    def __eq__(self, other):
        if not isinstance(other, ErrorEntry):
            return NotImplemented
        return self.message == other.message and self.source == other.source

    def __hash__(self):
        return hash((self.message, self.source))

    def __repr__(self):
        return f"ErrorEntry({self.message!r}, source={self.source!r})"


def _is_form_level(issue: ParseIssue, path: Tuple[Segment, ...]) -> bool:
    if path:
        return False
    if issue.tag == "Refinement":
        return issue.kind == "Predicate" and is_composite_type(issue.ast.from_)
    if issue.tag == "Transformation":
        return (
            issue.kind == "Transformation"
            and getattr(issue.ast, "transformation_tag", None) == "FinalTransformation"
            and is_composite_type(issue.ast.from_)
        )
    return False


def route_errors_with_source(issue: ParseIssue) -> Dict[str, ErrorEntry]:
    """
    Walks ``issue`` and returns ``{field_path: ErrorEntry}``.

    A predicate failure of a refinement over the whole form switches the
    source to "refinement" for its branch; refinements nested inside a
    field stay "field". The first message per path wins and the root
    path is ``""``.
    """
    errors: Dict[str, ErrorEntry] = {}

    def walk(current: ParseIssue, path: Tuple[Segment, ...], source: str):
        tag = current.tag
        if tag == "Pointer":
            walk(current.issue, path + current.segments, source)
        elif tag == "Composite":
            for child in current.children:
                walk(child, path, source)
        elif tag in ("Refinement", "Transformation"):
            if _is_form_level(current, path):
                source = REFINEMENT
            walk(current.issue, path, source)
        else:
            key = serialize_path(path)
            if key not in errors:
                errors[key] = ErrorEntry(get_message(current), source)

    walk(issue, (), FIELD)
    return errors


def route_errors(issue: ParseIssue) -> Dict[str, str]:
    """Field path to message, without sources; root-level errors are left out."""
    return {
        path: entry.message
        for path, entry in route_errors_with_source(issue).items()
        if path != ROOT
    }


def extract_first_error(issue: ParseIssue) -> Optional[str]:
    formatted = format_issues(issue)
    return formatted[0].message if formatted else None
