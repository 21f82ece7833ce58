from typing import Any, List, Optional, Sequence, Tuple, Union

PropertyKey = Union[str, int]


class ParseIssue:
    """Node of the issue tree produced by a failed decode."""
    tag: str = None

    def __repr__(self):
        return f"{self.__class__.__name__}({self.__dict__!r})"


class TypeIssue(ParseIssue):
    """The value does not conform to the schema."""
    tag = "Type"

    def __init__(self, ast, actual: Any, message: Optional[str] = None):
        self.ast = ast
        self.actual = actual
        self.message = message


class Missing(ParseIssue):
    tag = "Missing"

    def __init__(self, ast, actual: Any = None, message: Optional[str] = None):
        self.ast = ast
        self.actual = actual
        self.message = message


class Unexpected(ParseIssue):
    tag = "Unexpected"

    def __init__(self, actual: Any, message: Optional[str] = None):
        self.actual = actual
        self.message = message


class Forbidden(ParseIssue):
    tag = "Forbidden"

    def __init__(self, ast, actual: Any, message: Optional[str] = None):
        self.ast = ast
        self.actual = actual
        self.message = message


class Pointer(ParseIssue):
    """Locates ``issue`` at ``path`` relative to the enclosing value."""
    tag = "Pointer"

    def __init__(self, path: Union[PropertyKey, Sequence[PropertyKey]], actual: Any, issue: ParseIssue):
        self.path = path
        self.actual = actual
        self.issue = issue

    @property
    def segments(self) -> Tuple[PropertyKey, ...]:
        if isinstance(self.path, (list, tuple)):
            return tuple(self.path)
        return (self.path,)


class Composite(ParseIssue):
    tag = "Composite"

    def __init__(self, ast, actual: Any, issues: Union[ParseIssue, Sequence[ParseIssue]], output: Any = None):
        self.ast = ast
        self.actual = actual
        self.issues = issues
        self.output = output

    @property
    def children(self) -> List[ParseIssue]:
        if isinstance(self.issues, (list, tuple)):
            return list(self.issues)
        return [self.issues]


class RefinementIssue(ParseIssue):
    """
    Failure of a refinement: ``kind`` is "From" when the refined schema
    itself failed, "Predicate" when the predicate rejected the value.
    """
    tag = "Refinement"

    def __init__(self, ast, actual: Any, kind: str, issue: ParseIssue):
        self.ast = ast
        self.actual = actual
        self.kind = kind
        self.issue = issue


class TransformationIssue(ParseIssue):
    """
    Failure of a transformation: "Encoded" (source side failed),
    "Transformation" (the step itself failed) or "Type" (target side failed).
    """
    tag = "Transformation"

    def __init__(self, ast, actual: Any, kind: str, issue: ParseIssue):
        self.ast = ast
        self.actual = actual
        self.kind = kind
        self.issue = issue


class FormattedIssue:
    __slots__ = ('tag', 'path', 'message')

    def __init__(self, tag: str, path: Tuple[PropertyKey, ...], message: str):
        self.tag = tag
        self.path = path
        self.message = message

    def __eq__(self, other):
        if not isinstance(other, FormattedIssue):
            return NotImplemented
        return (self.tag, self.path, self.message) == (other.tag, other.path, other.message)

    def __repr__(self):
        return f"FormattedIssue(tag={self.tag!r}, path={self.path!r}, message={self.message!r})"


def _describe(ast) -> str:
    if ast is None:
        return "unknown"
    return ast.describe()


def get_message(issue: ParseIssue) -> str:
    """Message of a terminal issue, falling back to the default wording."""
    if issue.message:
        return issue.message
    if issue.tag == "Type":
        return f"Expected {_describe(issue.ast)}, actual {issue.actual!r}"
    if issue.tag == "Missing":
        return "is missing"
    if issue.tag == "Unexpected":
        return "is unexpected"
    if issue.tag == "Forbidden":
        return "is forbidden"
    raise ValueError(f"Not a terminal issue: {issue.tag}")


def format_issues(issue: ParseIssue) -> List[FormattedIssue]:
    """Flattens an issue tree into terminal issues, in tree order."""
    result: List[FormattedIssue] = []

    def walk(current: ParseIssue, path: Tuple[PropertyKey, ...]):
        tag = current.tag
        if tag == "Pointer":
            walk(current.issue, path + current.segments)
        elif tag == "Composite":
            for child in current.children:
                walk(child, path)
        elif tag in ("Refinement", "Transformation"):
            walk(current.issue, path)
        else:
            result.append(FormattedIssue(tag, path, get_message(current)))

    walk(issue, ())
    return result


class ParseError(Exception):
    """Raised when a value fails to decode; carries the issue tree."""

    def __init__(self, issue: ParseIssue):
        self.issue = issue
        super().__init__(issue)

    @property
    def issues(self) -> List[FormattedIssue]:
        return format_issues(self.issue)

    def __str__(self):
        lines = []
        for formatted in self.issues:
            if formatted.path:
                location = ".".join(str(segment) for segment in formatted.path)
                lines.append(f"[{location}] {formatted.message}")
            else:
                lines.append(formatted.message)
        return "\n".join(lines)
