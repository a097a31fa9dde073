"""Encode and decode query strings.

Bound operations serialise their query parameters with one of five
formatters, chosen at compile time from the parameter's ``style`` and
``explode`` flags:

==========  ===============================  =========================
formatter   ``{"ids": [1, 2]}``              ``{"f": {"a": 1}}``
==========  ===============================  =========================
``form``    ``ids=1,2``                      ``f=a,1``
``explode`` ``ids=1&ids=2``                  ``a=1``
``space``   ``ids=1%202``                    ``f=a%201``
``pipe``    ``ids=1|2``                      ``f=a|1``
``deep``    ``ids[]=1&ids[]=2``              ``f[a]=1``
==========  ===============================  =========================

``None`` values are dropped. Fragments are joined with :func:`query`,
and :func:`maybe_add_query` merges the process-wide default flags underneath
the caller's free-form query values.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Mapping, Optional
from urllib.parse import parse_qsl, quote, urlencode

Formatter = Callable[[Mapping[str, Any]], str]


def coerce_to_string(value: Any) -> str:
    """Render a scalar the way it appears on the wire (dates as ISO 8601)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, date):
        return value.isoformat()
    return value if isinstance(value, str) else str(value)


def encode(value: Any) -> str:
    """Percent-encode a single value the way ``encodeURIComponent`` does."""
    return quote(coerce_to_string(value), safe="!'()*")


def _flatten(value: Any) -> list[Any]:
    if isinstance(value, Mapping):
        return [item for pair in value.items() for item in pair]
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def delimited(delimiter: str = ",") -> Formatter:
    """Return a formatter joining array/object members with *delimiter*."""

    def formatter(params: Mapping[str, Any]) -> str:
        return "&".join(
            f"{encode(name)}={delimiter.join(encode(v) for v in _flatten(value))}"
            for name, value in params.items()
            if value is not None
        )

    return formatter


form = delimited(",")
space = delimited("%20")
pipe = delimited("|")


def explode(params: Mapping[str, Any]) -> str:
    """Repeat the key for arrays; spread objects into their own keys."""
    parts: list[str] = []
    for name, value in params.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            parts.append(explode(value))
        elif isinstance(value, (list, tuple)):
            parts.extend(f"{encode(name)}={encode(v)}" for v in value if v is not None)
        else:
            parts.append(f"{encode(name)}={encode(value)}")
    return "&".join(p for p in parts if p)


def deep(params: Mapping[str, Any], path: tuple[str, ...] = ()) -> str:
    """Nested ``key[sub]=value`` pairs (OpenAPI ``deepObject``)."""
    parts: list[str] = []
    for name, value in params.items():
        if value is None:
            continue
        key_path = (*path, str(name))
        if isinstance(value, Mapping):
            parts.append(deep(value, key_path))
        elif isinstance(value, (list, tuple)):
            key = _deep_key((*key_path, ""))
            parts.extend(f"{key}={encode(v)}" for v in value if v is not None)
        else:
            parts.append(f"{_deep_key(key_path)}={encode(value)}")
    return "&".join(p for p in parts if p)


def _deep_key(path: tuple[str, ...]) -> str:
    head, *rest = path
    return encode(head) + "".join(f"[{encode(segment)}]" for segment in rest)


FORMATTERS: dict[str, Formatter] = {
    "form": form,
    "explode": explode,
    "space": space,
    "pipe": pipe,
    "deep": deep,
}


def query(*fragments: str) -> str:
    """Join non-empty fragments into a ``?``-prefixed query string (or ``""``)."""
    joined = "&".join(f for f in fragments if f)
    return f"?{joined}" if joined else ""


def maybe_add_query(
    base: str,
    values: Optional[Mapping[str, Any]] = None,
    defaults: Optional[Mapping[str, Any]] = None,
) -> str:
    """Append ``defaults`` overlaid with ``values`` to *base* as query parameters."""
    entries = {**(defaults or {}), **(values or {})}
    if not entries:
        return base
    encoded = urlencode([(key, coerce_to_string(value)) for key, value in entries.items()])
    separator = "&" if "?" in base else "?"
    return f"{base}{separator}{encoded}"


def join_url(base: Optional[str], url: str) -> str:
    """Join a base URL and an operation URL with exactly one slash between them."""
    if not base or url.startswith(("http://", "https://")):
        return url
    if not url:
        return base
    return f"{base.rstrip('/')}/{url.lstrip('/')}"


def parse_query(text: str) -> dict[str, Any]:
    """Decode a query string; repeated keys become lists.

    Example::

        >>> parse_query("?a=1&b=x&b=y")
        {'a': '1', 'b': ['x', 'y']}
    """
    result: dict[str, Any] = {}
    for key, value in parse_qsl(text.lstrip("?"), keep_blank_values=True):
        if key in result:
            existing = result[key]
            result[key] = [*existing, value] if isinstance(existing, list) else [existing, value]
        else:
            result[key] = value
    return result
