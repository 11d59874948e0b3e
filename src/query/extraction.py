"""
Dot-notation field extraction for nested documents.

Paths such as ``addresses.postalCode`` cross arrays: every element of an
array is visited, so a path may reach several terminal values.
"""

from collections.abc import Mapping
from typing import Any


class _NoValue:
    """Marker for a parameter that resolved to nothing; the clause holding it is dropped."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "NO_VALUE"

    def __bool__(self) -> bool:
        return False


NO_VALUE = _NoValue()


def split_path(field_path: str) -> list[str]:
    return field_path.split(".")


def extract_all(document: Any, field_path: str) -> list[Any]:
    """
    Extract every terminal value reachable at a dot-notation path.

    Args:
        document: Document (mapping) to walk
        field_path: Dot-separated path, e.g. "phoneKey.phoneNumber"

    Returns:
        All values found, in document order (may be empty)
    """
    results: list[Any] = []
    _collect(document, split_path(field_path), 0, results)
    return results


def _collect(current: Any, parts: list[str], index: int, results: list[Any]) -> None:
    if current is None:
        return

    if index >= len(parts):
        results.append(current)
        return

    if isinstance(current, Mapping):
        child = current.get(parts[index])
        if isinstance(child, list):
            for item in child:
                _collect(item, parts, index + 1, results)
        else:
            _collect(child, parts, index + 1, results)
    elif isinstance(current, list):
        for item in current:
            _collect(item, parts, index, results)


def extract_first(document: Any, field_path: str) -> Any:
    """Return the first value reachable at a path, or NO_VALUE when absent."""
    values = extract_all(document, field_path)
    return values[0] if values else NO_VALUE


def root_field(field_path: str) -> str:
    return split_path(field_path)[0]


def sample_projection(field_path: str) -> dict[str, int]:
    """Projection fetching only the root of a path (``_id`` kept only when it is the root)."""
    root = root_field(field_path)
    projection = {root: 1}
    if root != "_id":
        projection["_id"] = 0
    return projection
