"""Query string encoding with bracketed nested keys.

Two dialects share one decoder:

- tag dialect (used whenever ``tags`` is a key): sequences inside a
  mapping repeat the bracketed key, ``tags[host]=a&tags[host]=b``
- generic nested dialect: sequences get a trailing ``[]``,
  ``names[]=a&names[]=b`` and ``tags[host][]=a``

Only one level of bracket nesting is supported.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote, unquote

from .errors import InvalidArgument


SUBKEY_PATTERN = re.compile(r"\[|\]")


def encode(params: Mapping[str, Any]) -> str:
    """Encode params as a query string (no leading ``?``)."""
    if "tags" in params:
        return encode_tags(params)
    return encode_nested(params)


def encode_tags(params: Mapping[str, Any]) -> str:
    """Encode using the tag dialect."""
    return "&".join(_flatten(params, array_suffix=""))


def encode_nested(params: Mapping[str, Any]) -> str:
    """Encode using the generic nested dialect."""
    return "&".join(_flatten(params, array_suffix="[]"))


def decode(query: str) -> dict[str, Any]:
    """
    Decode a query string produced by either dialect.

    A repeated ``outer[inner]`` key becomes a list on its second
    occurrence; later occurrences append to that list.
    """
    params: dict[str, Any] = {}
    if query.startswith("?"):
        query = query[1:]

    for pair in query.split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        value = unquote(value)
        segments = [unquote(s) for s in SUBKEY_PATTERN.split(key) if s]
        if not segments:
            continue

        if len(segments) == 1:
            name = segments[0]
            if key.endswith("[]"):
                existing = params.get(name)
                if isinstance(existing, list):
                    existing.append(value)
                else:
                    params[name] = [value]
            else:
                params[name] = value
            continue

        outer, inner = segments[0], segments[1]
        nested = params.get(outer)
        if not isinstance(nested, dict):
            nested = params[outer] = {}

        if inner not in nested:
            nested[inner] = value
        elif isinstance(nested[inner], list):
            nested[inner].append(value)
        else:
            nested[inner] = [nested[inner], value]

    return params


def _flatten(params: Mapping[str, Any], array_suffix: str) -> list[str]:
    pairs: list[str] = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            for subkey, subvalue in value.items():
                if subvalue is None:
                    continue
                if isinstance(subvalue, Mapping):
                    raise InvalidArgument(
                        f"Parameter {key}[{subkey}] nests deeper than one level"
                    )
                nested_key = f"{_escape(key)}[{_escape(subkey)}]"
                if _is_sequence(subvalue):
                    pairs.extend(f"{nested_key}{array_suffix}={_escape(v)}" for v in subvalue)
                else:
                    pairs.append(f"{nested_key}={_escape(subvalue)}")
        elif _is_sequence(value):
            pairs.extend(f"{_escape(key)}[]={_escape(v)}" for v in value)
        else:
            pairs.append(f"{_escape(key)}={_escape(value)}")
    return pairs


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def _escape(value: Any) -> str:
    if isinstance(value, bool):
        value = "true" if value else "false"
    return quote(str(value), safe="")
