#!/usr/bin/env python3
"""
tolerant_reader.py — Extract only the fields a consumer depends on.

Place at: cdc/services/tolerant_reader.py

What this does:
  - parse(raw, whitelist) pulls whitelisted dotted paths out of a JSON payload
    and ignores everything else, so a provider can add, rename or reorder
    fields the consumer never reads.
  - A whitelisted path that is absent raises MissingField; one with the wrong
    kind raises TypeMismatch. Missing fields are never defaulted.
  - read_model(raw, model, whitelist) validates the extracted values into a
    pydantic model.

Examples:
  parse('{"currently": {"summary": "Rain", "extra": {"noise": 1}}}',
        {"currently.summary": "string"})
  # -> {"summary": "Rain"}

  parse('{"daily": {"data": [{"summary": "Sun"}]}}', ["daily.data.0.summary"])
  # -> {"summary": "Sun"}

Notes:
  - Result keys are the last path segment; two whitelisted paths ending in the
    same name are rejected up front.
  - Numeric segments index into arrays.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel

from cdc.core.errors import MissingField, ParseError, TypeMismatch
from cdc.schemas import KIND_DEFAULTS, kind_of

M = TypeVar("M", bound=BaseModel)

Whitelist = Union[Mapping[str, Optional[str]], Iterable[str]]


def _normalize(whitelist: Whitelist) -> Dict[str, Optional[str]]:
    if isinstance(whitelist, Mapping):
        fields = dict(whitelist)
    else:
        fields = {path: None for path in whitelist}
    seen: Dict[str, str] = {}
    for path, kind in fields.items():
        if kind is not None and kind not in KIND_DEFAULTS:
            raise ValueError(f"unknown kind {kind!r} for {path!r}")
        leaf = path.rsplit(".", 1)[-1]
        if leaf in seen:
            raise ValueError(f"whitelisted paths {seen[leaf]!r} and {path!r} share the name {leaf!r}")
        seen[leaf] = path
    return fields


def _decode(raw: Union[str, bytes, Mapping[str, Any]]) -> Any:
    if isinstance(raw, Mapping):
        return raw
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Payload is not valid JSON: {e}") from e


def _lookup(doc: Any, path: str) -> Any:
    node = doc
    walked = []
    for segment in path.split("."):
        where = ".".join(walked) or "$"
        if isinstance(node, dict):
            if segment not in node:
                raise MissingField(path)
            node = node[segment]
        elif isinstance(node, list) and segment.isdigit():
            index = int(segment)
            if index >= len(node):
                raise MissingField(path)
            node = node[index]
        else:
            raise TypeMismatch(where, "object" if not segment.isdigit() else "array", kind_of(node))
        walked.append(segment)
    return node


def parse(raw: Union[str, bytes, Mapping[str, Any]], whitelist: Whitelist) -> Dict[str, Any]:
    fields = _normalize(whitelist)
    doc = _decode(raw)
    out: Dict[str, Any] = {}
    for path, kind in fields.items():
        value = _lookup(doc, path)
        if kind is not None and kind_of(value) != kind:
            raise TypeMismatch(path, kind, kind_of(value))
        out[path.rsplit(".", 1)[-1]] = value
    return out


def read_model(raw: Union[str, bytes, Mapping[str, Any]], model: Type[M], whitelist: Whitelist) -> M:
    return model.model_validate(parse(raw, whitelist))
