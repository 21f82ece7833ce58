"""
Field path addressing over nested encoded value trees.

A path is a tuple of segments: ``str`` for properties, ``int`` for array
indices. The canonical string form is ``"items[2].name"``.
"""
import re
from typing import Any, Iterable, Optional, Sequence, Tuple, Union

Segment = Union[str, int]
Path = Tuple[Segment, ...]
PathLike = Union[str, Sequence[Segment]]

_TOKEN = re.compile(r"([^.\[\]]+)|\[(\d+)\]")


def parse_path(path: PathLike) -> Path:
    """Parses ``"a.b[2].c"`` into ``("a", "b", 2, "c")``; sequences pass through."""
    if not isinstance(path, str):
        return tuple(path)
    if path == "":
        return ()

    segments = []
    position = 0
    length = len(path)
    while position < length:
        if path[position] == "." and segments:
            position += 1
        match = _TOKEN.match(path, position)
        if match is None:
            raise ValueError(f"Invalid field path: {path!r}")
        name, index = match.groups()
        segments.append(int(index) if index is not None else name)
        position = match.end()
    return tuple(segments)


def serialize_path(segments: Iterable[Segment]) -> str:
    """Inverse of ``parse_path``."""
    result = ""
    for segment in segments:
        if isinstance(segment, int):
            result += f"[{segment}]"
        elif result:
            result += f".{segment}"
        else:
            result = segment
    return result


to_path_string = serialize_path


def get_nested_value(obj: Any, path: PathLike) -> Any:
    """Returns the value at ``path``, or None when any node on the way is missing."""
    current = obj
    for segment in parse_path(path):
        if current is None:
            return None
        if isinstance(segment, int):
            if not isinstance(current, (list, tuple)) or segment < 0 or segment >= len(current):
                return None
            current = current[segment]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(segment)
    return current


def _empty_container(next_segment: Segment):
    return [] if isinstance(next_segment, int) else {}


def set_nested_value(obj: Any, path: PathLike, value: Any) -> Any:
    """
    Returns a copy of ``obj`` with ``value`` stored at ``path``.

    Only the chain of containers from the root to the target is copied;
    every sibling is shared with the original tree. Missing containers are
    created as dicts or lists depending on the next segment.
    """
    segments = parse_path(path)
    if not segments:
        return value

    head, rest = segments[0], segments[1:]
    if isinstance(head, int):
        result = list(obj) if isinstance(obj, (list, tuple)) else []
        while len(result) <= head:
            result.append(None)
        child = result[head]
        if rest and child is None:
            child = _empty_container(rest[0])
        result[head] = set_nested_value(child, rest, value)
    else:
        result = dict(obj) if isinstance(obj, dict) else {}
        child = result.get(head)
        if rest and child is None:
            child = _empty_container(rest[0])
        result[head] = set_nested_value(child, rest, value)
    return result


def is_path_or_parent_dirty(dirty_paths: Iterable[str], path: PathLike) -> bool:
    """True when ``path`` or any of its prefixes is in ``dirty_paths``."""
    dirty = dirty_paths if isinstance(dirty_paths, (set, frozenset)) else set(dirty_paths)
    segments = parse_path(path)
    for end in range(len(segments), 0, -1):
        if serialize_path(segments[:end]) in dirty:
            return True
    return False


def schema_path_to_field_path(path: Sequence[Segment]) -> Optional[str]:
    """Field path string of an issue path; None for the root."""
    if not path:
        return None
    return serialize_path(path)
