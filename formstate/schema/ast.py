import inspect
import typing
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from formstate.schema.issues import (
    Composite,
    Forbidden,
    Missing,
    ParseIssue,
    Pointer,
    RefinementIssue,
    TransformationIssue,
    TypeIssue,
    Unexpected,
)

_ASYNC_FORBIDDEN = "cannot be resolved synchronously, this is caused by an async refinement"


class ParseOptions:
    """
    Options for a single decode.

    errors: "first" stops at the first failure, "all" collects every failure.
    on_excess_property: "ignore" drops unknown keys, "error" reports them.
    is_sync: async steps report a Forbidden issue instead of running.
    """
    __slots__ = ('errors', 'on_excess_property', 'is_sync')

    def __init__(self, errors: str = "first", on_excess_property: str = "ignore", is_sync: bool = False):
        if errors not in ("first", "all"):
            raise ValueError("errors must be 'first' or 'all'")
        if on_excess_property not in ("ignore", "error"):
            raise ValueError("on_excess_property must be 'ignore' or 'error'")
        self.errors = errors
        self.on_excess_property = on_excess_property
        self.is_sync = is_sync

    @property
    def all_errors(self) -> bool:
        return self.errors == "all"


class FilterIssue:
    """Failure reported by a refinement predicate, optionally located at ``path``."""
    __slots__ = ('path', 'message')

    def __init__(self, path: typing.Union[str, int, Sequence[typing.Union[str, int]]], message: str):
        self.path = path
        self.message = message

    @property
    def segments(self) -> typing.Tuple[typing.Union[str, int], ...]:
        if isinstance(self.path, (list, tuple)):
            return tuple(self.path)
        if self.path == "" or self.path is None:
            return ()
        return (self.path,)

    def __eq__(self, other):
        if not isinstance(other, FilterIssue):
            return NotImplemented
        return self.segments == other.segments and self.message == other.message

    def __repr__(self):
        return f"FilterIssue(path={self.path!r}, message={self.message!r})"


class Schema:
    """
    Base class of schema nodes.

    ``tag`` names the node kind; composite kinds are TypeLiteral,
    TupleType, Declaration, Union and Suspend.
    """
    tag: str = None

    def __init__(self, message: Optional[str] = None):
        self.message = message

    def describe(self) -> str:
        return self.tag.lower()

    def pipe(self, *fns: Callable[['Schema'], 'Schema']) -> 'Schema':
        """Applies each function in turn, e.g. ``String().pipe(min_length(3))``."""
        result = self
        for fn in fns:
            result = fn(result)
        return result

    async def _parse(self, value: Any, options: ParseOptions):
        """Returns ``(True, output)`` or ``(False, issue)``."""
        raise NotImplementedError

    def _is_async(self, seen: set) -> bool:
        return False

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.describe()}>"


# -- Primitives ---

class String(Schema):
    tag = "String"

    async def _parse(self, value, options):
        if isinstance(value, str):
            return True, value
        return False, TypeIssue(self, value, self.message)


class Number(Schema):
    tag = "Number"

    async def _parse(self, value, options):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return True, value
        return False, TypeIssue(self, value, self.message)


class Boolean(Schema):
    tag = "Boolean"

    async def _parse(self, value, options):
        if isinstance(value, bool):
            return True, value
        return False, TypeIssue(self, value, self.message)


class Unknown(Schema):
    tag = "Unknown"

    async def _parse(self, value, options):
        return True, value


class Literal(Schema):
    tag = "Literal"

    def __init__(self, *literals: Any, message: Optional[str] = None):
        super().__init__(message)
        self.literals = literals

    def describe(self) -> str:
        return " | ".join(repr(literal) for literal in self.literals)

    async def _parse(self, value, options):
        for literal in self.literals:
            if value == literal and type(value) is type(literal):
                return True, value
        return False, TypeIssue(self, value, self.message)


# -- Composites ---

class Struct(Schema):
    """Object with a fixed, ordered set of keys."""
    tag = "TypeLiteral"

    def __init__(self, fields: Dict[str, Schema], optional: Iterable[str] = (), message: Optional[str] = None):
        super().__init__(message)
        self.fields = dict(fields)
        self.optional = frozenset(optional)

    def describe(self) -> str:
        inner = "; ".join(
            f"{key}{'?' if key in self.optional else ''}: {schema.describe()}"
            for key, schema in self.fields.items()
        )
        return "{ " + inner + " }"

    async def _parse(self, value, options):
        if not isinstance(value, Mapping):
            return False, TypeIssue(self, value, self.message)

        issues: List[ParseIssue] = []
        output = {}

        for key, schema in self.fields.items():
            if key not in value:
                if key in self.optional:
                    continue
                issues.append(Pointer(key, value, Missing(schema)))
                if not options.all_errors:
                    return False, Composite(self, value, issues, output)
                continue

            ok, result = await schema._parse(value[key], options)
            if ok:
                output[key] = result
            else:
                issues.append(Pointer(key, value, result))
                if not options.all_errors:
                    return False, Composite(self, value, issues, output)

        if options.on_excess_property == "error":
            expected = " | ".join(repr(key) for key in self.fields)
            for key in value:
                if key not in self.fields:
                    issues.append(Pointer(key, value, Unexpected(value[key], f"is unexpected, expected: {expected}")))
                    if not options.all_errors:
                        return False, Composite(self, value, issues, output)

        if issues:
            return False, Composite(self, value, issues, output)
        return True, output

    def _is_async(self, seen):
        return any(schema._is_async(seen) for schema in self.fields.values())


class Class(Struct):
    """Struct decoded into an instance of ``cls`` (keyword construction)."""
    tag = "Declaration"

    def __init__(self, cls: type, fields: Dict[str, Schema], optional: Iterable[str] = (),
                 message: Optional[str] = None):
        super().__init__(fields, optional=optional, message=message)
        self.cls = cls

    def describe(self) -> str:
        return self.cls.__name__

    async def _parse(self, value, options):
        if isinstance(value, self.cls):
            value = {key: getattr(value, key) for key in self.fields if hasattr(value, key)}
        ok, result = await super()._parse(value, options)
        if not ok:
            return False, result
        return True, self.cls(**result)


class Array(Schema):
    """Homogeneous sequence."""
    tag = "TupleType"

    def __init__(self, item: Schema, message: Optional[str] = None):
        super().__init__(message)
        self.item = item

    def describe(self) -> str:
        return f"list[{self.item.describe()}]"

    async def _parse(self, value, options):
        if not isinstance(value, (list, tuple)):
            return False, TypeIssue(self, value, self.message)

        issues: List[ParseIssue] = []
        output = []
        for index, item in enumerate(value):
            ok, result = await self.item._parse(item, options)
            if ok:
                output.append(result)
            else:
                issues.append(Pointer(index, value, result))
                if not options.all_errors:
                    break

        if issues:
            return False, Composite(self, value, issues, output)
        return True, output

    def _is_async(self, seen):
        return self.item._is_async(seen)


class Tuple(Schema):
    """Fixed-length sequence with a schema per position."""
    tag = "TupleType"

    def __init__(self, *elements: Schema, message: Optional[str] = None):
        super().__init__(message)
        self.elements = elements

    def describe(self) -> str:
        return "tuple[" + ", ".join(element.describe() for element in self.elements) + "]"

    async def _parse(self, value, options):
        if not isinstance(value, (list, tuple)):
            return False, TypeIssue(self, value, self.message)

        issues: List[ParseIssue] = []
        output = []
        for index, element in enumerate(self.elements):
            if index >= len(value):
                issues.append(Pointer(index, value, Missing(element)))
            else:
                ok, result = await element._parse(value[index], options)
                if ok:
                    output.append(result)
                    continue
                issues.append(Pointer(index, value, result))
            if not options.all_errors:
                return False, Composite(self, value, issues, output)

        for index in range(len(self.elements), len(value)):
            issues.append(Pointer(index, value, Unexpected(value[index], f"is unexpected, expected: {len(self.elements)} element(s)")))
            if not options.all_errors:
                break

        if issues:
            return False, Composite(self, value, issues, output)
        return True, tuple(output)

    def _is_async(self, seen):
        return any(element._is_async(seen) for element in self.elements)


class Union(Schema):
    tag = "Union"

    def __init__(self, *members: Schema, message: Optional[str] = None):
        super().__init__(message)
        self.members = members

    def describe(self) -> str:
        return " | ".join(member.describe() for member in self.members)

    async def _parse(self, value, options):
        issues: List[ParseIssue] = []
        for member in self.members:
            ok, result = await member._parse(value, options)
            if ok:
                return True, result
            issues.append(result)
        if self.message:
            return False, TypeIssue(self, value, self.message)
        return False, Composite(self, value, issues)

    def _is_async(self, seen):
        return any(member._is_async(seen) for member in self.members)


class Suspend(Schema):
    """Lazily resolved schema, for recursive definitions."""
    tag = "Suspend"

    def __init__(self, thunk: Callable[[], Schema]):
        super().__init__()
        self.thunk = thunk
        self._resolved = None

    @property
    def resolved(self) -> Schema:
        if self._resolved is None:
            self._resolved = self.thunk()
        return self._resolved

    def describe(self) -> str:
        return "<suspended schema>"

    async def _parse(self, value, options):
        return await self.resolved._parse(value, options)

    def _is_async(self, seen):
        if id(self) in seen:
            return False
        seen.add(id(self))
        return self.resolved._is_async(seen)


# -- Refinements and transformations ---

def predicate_result_to_issue(ast: Schema, value: Any, result: Any, message: Optional[str]) -> Optional[ParseIssue]:
    """
    Interprets what a predicate returned.

    None/True pass; False fails with ``message``; a string fails with that
    message; a FilterIssue fails at its path; a list combines several.
    """
    if result is None or result is True:
        return None
    if result is False:
        return TypeIssue(ast, value, message)
    if isinstance(result, str):
        return TypeIssue(ast, value, result)
    if isinstance(result, ParseIssue):
        return result
    if isinstance(result, FilterIssue):
        issue = TypeIssue(ast, value, result.message)
        if result.segments:
            return Pointer(list(result.segments), value, issue)
        return issue
    if isinstance(result, (list, tuple)):
        issues = [
            issue for issue in (predicate_result_to_issue(ast, value, item, message) for item in result)
            if issue is not None
        ]
        if not issues:
            return None
        if len(issues) == 1:
            return issues[0]
        return Composite(ast, value, issues)
    raise TypeError(f"Unsupported refinement result: {result!r}")


class Refinement(Schema):
    """Synchronous predicate applied to the output of ``from_``."""
    tag = "Refinement"

    def __init__(self, from_: Schema, predicate: Callable[[Any], Any], message: Optional[str] = None,
                 description: Optional[str] = None):
        super().__init__(message)
        self.from_ = from_
        self.predicate = predicate
        self.description = description

    def describe(self) -> str:
        return self.description or f"{self.from_.describe()} (refined)"

    async def _parse(self, value, options):
        ok, result = await self.from_._parse(value, options)
        if not ok:
            return False, RefinementIssue(self, value, "From", result)

        outcome = self.predicate(result)
        if inspect.isawaitable(outcome):
            if inspect.iscoroutine(outcome):
                outcome.close()
            raise TypeError("Refinement predicates must be synchronous; use filter_async for async checks")

        issue = predicate_result_to_issue(self, result, outcome, self.message)
        if issue is None:
            return True, result
        return False, RefinementIssue(self, value, "Predicate", issue)

    def _is_async(self, seen):
        return self.from_._is_async(seen)


class Transform(Schema):
    """Decodes ``from_``, maps the output with ``decode``, then validates it against ``to``."""
    tag = "Transformation"
    transformation_tag = "Transform"

    def __init__(self, from_: Schema, to: Schema, decode: Callable[[Any], Any], message: Optional[str] = None):
        super().__init__(message)
        self.from_ = from_
        self.to = to
        self.decode = decode

    def describe(self) -> str:
        return f"({self.from_.describe()} <-> {self.to.describe()})"

    async def _parse(self, value, options):
        ok, result = await self.from_._parse(value, options)
        if not ok:
            return False, TransformationIssue(self, value, "Encoded", result)

        try:
            transformed = self.decode(result)
        except (ValueError, TypeError) as e:
            return False, TransformationIssue(self, value, "Transformation", TypeIssue(self, result, self.message or str(e)))

        ok, output = await self.to._parse(transformed, options)
        if not ok:
            return False, TransformationIssue(self, value, "Type", output)
        return True, output

    def _is_async(self, seen):
        return self.from_._is_async(seen) or self.to._is_async(seen)


class AsyncRefinement(Schema):
    """
    Asynchronous predicate applied to the output of ``from_``.

    Modelled as a final transformation: failures are reported as
    Transformation issues, and a synchronous decode reports Forbidden.
    """
    tag = "Transformation"
    transformation_tag = "FinalTransformation"

    def __init__(self, from_: Schema, predicate: Callable[[Any], Any], message: Optional[str] = None,
                 description: Optional[str] = None):
        super().__init__(message)
        self.from_ = from_
        self.predicate = predicate
        self.description = description

    def describe(self) -> str:
        return self.description or f"{self.from_.describe()} (async refined)"

    async def _parse(self, value, options):
        ok, result = await self.from_._parse(value, options)
        if not ok:
            return False, TransformationIssue(self, value, "Encoded", result)

        if options.is_sync:
            return False, TransformationIssue(self, value, "Transformation", Forbidden(self, value, _ASYNC_FORBIDDEN))

        outcome = self.predicate(result)
        if inspect.isawaitable(outcome):
            outcome = await outcome

        issue = predicate_result_to_issue(self, result, outcome, self.message)
        if issue is None:
            return True, result
        return False, TransformationIssue(self, value, "Transformation", issue)

    def _is_async(self, seen):
        return True


def filter(predicate: Callable[[Any], Any], message: Optional[str] = None,
           description: Optional[str] = None) -> Callable[[Schema], Schema]:
    """Pipeable synchronous refinement."""
    return lambda schema: Refinement(schema, predicate, message=message, description=description)


def filter_async(predicate: Callable[[Any], Any], message: Optional[str] = None,
                 description: Optional[str] = None) -> Callable[[Schema], Schema]:
    """Pipeable asynchronous refinement."""
    return lambda schema: AsyncRefinement(schema, predicate, message=message, description=description)


def get_base_ast(ast: Schema) -> Schema:
    """Unwraps refinement and transformation layers."""
    while ast is not None and ast.tag in ("Refinement", "Transformation"):
        ast = ast.from_
    return ast


COMPOSITE_TAGS = frozenset(["TypeLiteral", "TupleType", "Declaration", "Union", "Suspend"])


def is_composite_type(ast: Schema) -> bool:
    base = get_base_ast(ast)
    return base is not None and base.tag in COMPOSITE_TAGS
