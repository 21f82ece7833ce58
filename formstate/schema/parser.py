from typing import Any, Tuple

from formstate.schema.ast import ParseOptions, Schema
from formstate.schema.issues import Forbidden, ParseError


def _options(errors: str, on_excess_property: str, is_sync: bool) -> ParseOptions:
    return ParseOptions(errors=errors, on_excess_property=on_excess_property, is_sync=is_sync)


def run_sync(schema: Schema, value: Any, options: ParseOptions) -> Tuple[bool, Any]:
    """
    Drives a parse to completion without an event loop.

    Schema coroutines only suspend on async steps, which report Forbidden
    themselves in sync mode; anything else that suspends is reported the same way.
    """
    coro = schema._parse(value, options)
    try:
        coro.send(None)
    except StopIteration as stop:
        return stop.value
    coro.close()
    return False, Forbidden(schema, value, "cannot be resolved synchronously")


def requires_async(schema: Schema) -> bool:
    """True when decoding ``schema`` may need an event loop."""
    return schema._is_async(set())


def decode_either(schema: Schema, value: Any, errors: str = "first",
                  on_excess_property: str = "ignore") -> Tuple[bool, Any]:
    """Synchronous decode returning ``(True, output)`` or ``(False, ParseError)``."""
    ok, result = run_sync(schema, value, _options(errors, on_excess_property, True))
    if ok:
        return True, result
    return False, ParseError(result)


def decode_sync(schema: Schema, value: Any, errors: str = "first", on_excess_property: str = "ignore") -> Any:
    ok, result = decode_either(schema, value, errors, on_excess_property)
    if not ok:
        raise result
    return result


async def decode_issue(schema: Schema, value: Any, errors: str = "first",
                       on_excess_property: str = "ignore") -> Tuple[bool, Any]:
    """Asynchronous decode returning ``(True, output)`` or ``(False, issue)``."""
    return await schema._parse(value, _options(errors, on_excess_property, False))


async def decode(schema: Schema, value: Any, errors: str = "first", on_excess_property: str = "ignore") -> Any:
    """Decodes ``value``, running async refinements; raises ParseError on failure."""
    ok, result = await decode_issue(schema, value, errors, on_excess_property)
    if not ok:
        raise ParseError(result)
    return result
