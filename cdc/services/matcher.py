#!/usr/bin/env python3
"""
matcher.py — Compare actual HTTP messages against recorded patterns.

Place at: cdc/services/matcher.py

What this does:
  - match(pattern, actual, path) walks a pattern tree and returns the first
    MatchFailure (with a dotted path such as body.currently.summary) or None.
  - match_request / match_response apply it to whole messages.
  - render(pattern) turns a pattern into a concrete value by resolving every
    matcher to its example, which is what the stub server sends back and what
    the provider verifier sends out.

Matching rules:
  - exact      strict structural equality (dict key order ignored, True != 1)
  - regex      actual is a string that fully matches
  - type       actual has the declared kind, value ignored
  - each-like  actual is an array of >= min elements, each like the template
  - plain dict field-subset: extra actual fields are ignored
  - plain list positional, same length

Common examples:
  from cdc.services.matcher import exact, like, match
  failure = match({"summary": exact("Rain")}, {"summary": "Cloudy"}, "body")
  print(failure.path)   # body.summary
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from cdc.schemas import (
    CapturedRequest,
    CapturedResponse,
    EachLike,
    Exact,
    Matcher,
    MatchFailure,
    Regex,
    RequestPattern,
    ResponsePattern,
    Type,
    kind_of,
)


# -----------------------
# Matcher factories
# -----------------------
def exact(value: Any) -> Exact:
    return Exact(value=value)


def regex(pattern: str, example: str) -> Regex:
    return Regex(pattern=pattern, value=example)


def of_type(kind: str, example: Any = None) -> Type:
    return Type(kind=kind, value=example)


def like(example: Any) -> Type:
    """Type matcher whose kind is taken from the example value."""
    return Type(kind=kind_of(example), value=example)


def each_like(template: Any, min: int = 1) -> EachLike:
    return EachLike(template=template, min=min)


# -----------------------
# Helpers
# -----------------------
def _join(path: str, key: Any) -> str:
    if isinstance(key, int):
        return f"{path}[{key}]"
    return f"{path}.{key}" if path else str(key)


def strict_equal(a: Any, b: Any) -> bool:
    """Structural equality that never treats booleans as numbers."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, dict) and isinstance(b, dict):
        if a.keys() != b.keys():
            return False
        return all(strict_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(strict_equal(x, y) for x, y in zip(a, b))
    if kind_of(a) != kind_of(b):
        return False
    return a == b


# -----------------------
# Core: match
# -----------------------
def match(pattern: Any, actual: Any, path: str = "") -> Optional[MatchFailure]:
    """Return the first divergence between pattern and actual, or None."""
    if isinstance(pattern, Matcher):
        return _match_matcher(pattern, actual, path)

    if isinstance(pattern, dict):
        if not isinstance(actual, dict):
            return MatchFailure(path=path, expected="object", actual=actual)
        for key, sub in pattern.items():
            if key not in actual:
                return MatchFailure(path=_join(path, key), expected=_expected(sub), actual=None)
            failure = match(sub, actual[key], _join(path, key))
            if failure:
                return failure
        return None

    if isinstance(pattern, (list, tuple)):
        if not isinstance(actual, list):
            return MatchFailure(path=path, expected="array", actual=actual)
        if len(pattern) != len(actual):
            return MatchFailure(
                path=path,
                expected=f"array of length {len(pattern)}",
                actual=f"array of length {len(actual)}",
            )
        for i, (sub, item) in enumerate(zip(pattern, actual)):
            failure = match(sub, item, _join(path, i))
            if failure:
                return failure
        return None

    if not strict_equal(pattern, actual):
        return MatchFailure(path=path, expected=pattern, actual=actual)
    return None


def _expected(pattern: Any) -> Any:
    if isinstance(pattern, Exact):
        return pattern.value
    if isinstance(pattern, Matcher):
        return pattern.describe()
    return pattern


def _match_matcher(m: Matcher, actual: Any, path: str) -> Optional[MatchFailure]:
    if isinstance(m, Exact):
        if strict_equal(m.value, actual):
            return None
        return MatchFailure(path=path, expected=m.value, actual=actual)

    if isinstance(m, Regex):
        if isinstance(actual, str) and re.fullmatch(m.pattern, actual):
            return None
        return MatchFailure(path=path, expected=m.describe(), actual=actual)

    if isinstance(m, Type):
        if kind_of(actual) == m.kind:
            return None
        return MatchFailure(path=path, expected=m.describe(), actual=actual)

    if isinstance(m, EachLike):
        if not isinstance(actual, list):
            return MatchFailure(path=path, expected="array", actual=actual)
        if len(actual) < m.min:
            return MatchFailure(
                path=path,
                expected=m.describe(),
                actual=f"array of length {len(actual)}",
            )
        for i, item in enumerate(actual):
            failure = match(m.template, item, _join(path, i))
            if failure:
                return failure
        return None

    raise TypeError(f"unsupported matcher {type(m).__name__}")


# -----------------------
# Rendering
# -----------------------
def render(pattern: Any) -> Any:
    """Concrete value for a pattern: every matcher replaced by its example."""
    if isinstance(pattern, EachLike):
        return [render(pattern.template) for _ in range(max(pattern.min, 1))]
    if isinstance(pattern, Matcher):
        return render(pattern.example())
    if isinstance(pattern, dict):
        return {k: render(v) for k, v in pattern.items()}
    if isinstance(pattern, (list, tuple)):
        return [render(v) for v in pattern]
    return pattern


def render_mapping(pattern: Mapping[str, Any]) -> dict:
    return {k: str(render(v)) for k, v in pattern.items()}


# -----------------------
# Whole messages
# -----------------------
def _match_headers(expected: Mapping[str, Any], actual: Mapping[str, str], prefix: str) -> Optional[MatchFailure]:
    lowered = {k.lower(): v for k, v in actual.items()}
    for name, sub in expected.items():
        path = _join(prefix, name)
        if name.lower() not in lowered:
            return MatchFailure(path=path, expected=_expected(sub), actual=None)
        failure = match(sub, lowered[name.lower()], path)
        if failure:
            return failure
    return None


def match_request(pattern: RequestPattern, actual: CapturedRequest) -> Optional[MatchFailure]:
    if pattern.method != actual.method.upper():
        return MatchFailure(path="method", expected=pattern.method, actual=actual.method)
    failure = match(pattern.path, actual.path, "path")
    if failure:
        return failure
    for name, sub in pattern.query.items():
        path = _join("query", name)
        if name not in actual.query:
            return MatchFailure(path=path, expected=_expected(sub), actual=None)
        failure = match(sub, actual.query[name], path)
        if failure:
            return failure
    failure = _match_headers(pattern.headers, actual.headers, "headers")
    if failure:
        return failure
    if pattern.body is not None:
        return match(pattern.body, actual.body, "body")
    return None


def match_response(pattern: ResponsePattern, actual: CapturedResponse) -> Optional[MatchFailure]:
    if pattern.status != actual.status:
        return MatchFailure(path="status", expected=pattern.status, actual=actual.status)
    failure = _match_headers(pattern.headers, actual.headers, "headers")
    if failure:
        return failure
    if pattern.body is not None:
        return match(pattern.body, actual.body, "body")
    return None
