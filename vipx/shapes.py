"""
Response shape normalization.

The device answers either with the payload nested under ``result``
(``{"id": 3, "result": {"displays": [...]}}``) or flattened into the
response object itself (``{"id": 3, "displays": [...]}``). Both are
accepted: the nested shape is tried first, the flattened one second.
"""
from __future__ import annotations

from typing import Any, Iterable

from .errors import ResponseShapeError

_MISSING = object()


def _lookup(response: dict[str, Any], key: str) -> Any:
    result = response.get("result")
    if isinstance(result, dict) and key in result:
        return result[key]
    if key in response:
        return response[key]
    return _MISSING


def extract_field(response: Any, key: str, aliases: Iterable[str] = ()) -> Any:
    """
    Return ``key`` from a response in either shape.

    Args:
        response: Full response object
        key: Member name to look for
        aliases: Alternative member names tried after ``key``

    Raises:
        ResponseShapeError: If no shape carries the member
    """
    if not isinstance(response, dict):
        raise ResponseShapeError(f"Response is not an object: {response!r}")

    for name in (key, *aliases):
        value = _lookup(response, name)
        if value is not _MISSING and value is not None:
            return value

    raise ResponseShapeError(f"Response carries no '{key}' (nested or flattened): {response!r}")


def extract_list(response: Any, key: str) -> list[Any]:
    """
    Return a list member from a response, or [] when it is absent.

    Raises:
        ResponseShapeError: If the member is present but not a list
    """
    try:
        value = extract_field(response, key)
    except ResponseShapeError:
        if not isinstance(response, dict):
            raise
        return []

    if not isinstance(value, list):
        raise ResponseShapeError(f"'{key}' is not a list: {value!r}")
    return value


def extract_version(response: Any) -> int:
    """
    Return the server-selected protocol version from a handshake response.

    Raises:
        ResponseShapeError: If the version is missing or not an integer
    """
    value = extract_field(response, "server_selected_version", aliases=("serverSelectedVersion",))
    if isinstance(value, bool) or not isinstance(value, int):
        raise ResponseShapeError(f"server_selected_version is not an integer: {value!r}")
    return value
