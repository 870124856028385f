#!/usr/bin/env python3
"""
artifact.py — Write and read contract artifacts ("pact files").

Place at: cdc/services/artifact.py

What this does:
  - dumps(artifact) / write_artifact(artifact, pact_dir) serialize a
    ContractArtifact to JSON with sorted keys, 2-space indent and a trailing
    newline, so regenerating an unchanged contract is byte-identical.
  - loads(text) / read_artifact(path) parse the same format back.
  - Matchers are written inline as objects tagged "pact:matcher:type".

Format (abridged):
  {
    "consumer": {"name": "weather-client"},
    "interactions": [
      {
        "description": "forecast for Hamburg",
        "providerState": "weather forecast data",
        "request": {"method": "GET", "path": "/53.5511,9.9937"},
        "response": {"status": 200, "body": {"summary": {"pact:matcher:type": "type", ...}}}
      }
    ],
    "metadata": {"format": "cdc-json", "version": "1.0"},
    "provider": {"name": "weather-api"}
  }

Notes:
  - Unknown top-level fields are ignored when reading.
  - consumer/provider may be {"name": ...} or a bare string.
  - Anything malformed raises ArtifactParseError naming the offending path.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Union

from pydantic import ValidationError

from cdc.core.errors import ArtifactParseError
from cdc.schemas import (
    MATCHER_TYPES,
    ContractArtifact,
    EachLike,
    Exact,
    Interaction,
    Matcher,
    Regex,
    RequestPattern,
    ResponsePattern,
    Type,
)

log = logging.getLogger(__name__)

MATCHER_TAG = "pact:matcher:type"
FORMAT_NAME = "cdc-json"
FORMAT_VERSION = "1.0"


# -----------------------
# Encoding
# -----------------------
def _encode(node: Any) -> Any:
    if isinstance(node, Exact):
        return {MATCHER_TAG: Exact.tag, "value": _encode(node.value)}
    if isinstance(node, Regex):
        return {MATCHER_TAG: Regex.tag, "regex": node.pattern, "value": node.value}
    if isinstance(node, Type):
        return {MATCHER_TAG: Type.tag, "kind": node.kind, "value": _encode(node.value)}
    if isinstance(node, EachLike):
        return {MATCHER_TAG: EachLike.tag, "value": _encode(node.template), "min": node.min}
    if isinstance(node, Matcher):
        raise TypeError(f"cannot encode matcher {type(node).__name__}")
    if isinstance(node, dict):
        return {str(k): _encode(v) for k, v in node.items()}
    if isinstance(node, (list, tuple)):
        return [_encode(v) for v in node]
    return node


def _encode_interaction(i: Interaction) -> Dict[str, Any]:
    request: Dict[str, Any] = {"method": i.request.method, "path": _encode(i.request.path)}
    if i.request.query:
        request["query"] = _encode(i.request.query)
    if i.request.headers:
        request["headers"] = _encode(i.request.headers)
    if i.request.body is not None:
        request["body"] = _encode(i.request.body)

    response: Dict[str, Any] = {"status": i.response.status}
    if i.response.headers:
        response["headers"] = _encode(i.response.headers)
    if i.response.body is not None:
        response["body"] = _encode(i.response.body)

    return {
        "description": i.description,
        "providerState": i.provider_state,
        "request": request,
        "response": response,
    }


def to_document(artifact: ContractArtifact) -> Dict[str, Any]:
    return {
        "consumer": {"name": artifact.consumer},
        "provider": {"name": artifact.provider},
        "interactions": [_encode_interaction(i) for i in artifact.interactions],
        "metadata": {"format": FORMAT_NAME, "version": FORMAT_VERSION},
    }


def dumps(artifact: ContractArtifact) -> str:
    return json.dumps(to_document(artifact), indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def artifact_filename(consumer: str, provider: str) -> str:
    def slug(s: str) -> str:
        return re.sub(r"[^a-z0-9]+", "-", s.lower()).strip("-") or "unnamed"

    return f"{slug(consumer)}-{slug(provider)}.json"


def write_artifact(artifact: ContractArtifact, pact_dir: Union[str, Path]) -> Path:
    out_dir = Path(pact_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    target = out_dir / artifact_filename(artifact.consumer, artifact.provider)
    target.write_text(dumps(artifact), encoding="utf-8")
    log.info(
        "contract artifact written",
        extra={"extra": {"path": str(target), "interactions": len(artifact.interactions)}},
    )
    return target


# -----------------------
# Decoding
# -----------------------
def _decode(node: Any, path: str) -> Any:
    if isinstance(node, dict):
        if MATCHER_TAG in node:
            return _decode_matcher(node, path)
        return {k: _decode(v, f"{path}.{k}") for k, v in node.items()}
    if isinstance(node, list):
        return [_decode(v, f"{path}[{i}]") for i, v in enumerate(node)]
    return node


def _decode_matcher(node: Dict[str, Any], path: str) -> Matcher:
    tag = node.get(MATCHER_TAG)
    if tag not in MATCHER_TYPES:
        raise ArtifactParseError(path, f"unknown matcher tag {tag!r}")
    try:
        if tag == Exact.tag:
            return Exact(value=_decode(node.get("value"), f"{path}.value"))
        if tag == Regex.tag:
            return Regex(pattern=node["regex"], value=node["value"])
        if tag == Type.tag:
            return Type(kind=node["kind"], value=_decode(node.get("value"), f"{path}.value"))
        return EachLike(template=_decode(node["value"], f"{path}.value"), min=node.get("min", 1))
    except KeyError as e:
        raise ArtifactParseError(f"{path}.{e.args[0]}", "missing matcher field") from e
    except ValidationError as e:
        raise ArtifactParseError(path, f"invalid {tag} matcher: {e.errors()[0]['msg']}") from e


def _require(doc: Dict[str, Any], key: str, path: str) -> Any:
    if not isinstance(doc, dict):
        raise ArtifactParseError(path, "expected an object")
    if key not in doc:
        raise ArtifactParseError(f"{path}.{key}" if path else key, "missing required field")
    return doc[key]


def _party(doc: Dict[str, Any], key: str) -> str:
    value = _require(doc, key, "")
    if isinstance(value, dict):
        value = _require(value, "name", key)
    if not isinstance(value, str) or not value:
        raise ArtifactParseError(key, "expected a non-empty name")
    return value


def _decode_interaction(raw: Any, path: str) -> Interaction:
    req = _require(raw, "request", path)
    resp = _require(raw, "response", path)
    try:
        request = RequestPattern(
            method=_require(req, "method", f"{path}.request"),
            path=_decode(_require(req, "path", f"{path}.request"), f"{path}.request.path"),
            query=_decode(req.get("query") or {}, f"{path}.request.query"),
            headers=_decode(req.get("headers") or {}, f"{path}.request.headers"),
            body=_decode(req.get("body"), f"{path}.request.body"),
        )
        response = ResponsePattern(
            status=_require(resp, "status", f"{path}.response"),
            headers=_decode(resp.get("headers") or {}, f"{path}.response.headers"),
            body=_decode(resp.get("body"), f"{path}.response.body"),
        )
        return Interaction(
            description=_require(raw, "description", path),
            provider_state=raw.get("providerState") or "",
            request=request,
            response=response,
        )
    except ValidationError as e:
        err = e.errors()[0]
        loc = ".".join(str(p) for p in err["loc"])
        raise ArtifactParseError(f"{path}.{loc}" if loc else path, err["msg"]) from e


def from_document(doc: Any) -> ContractArtifact:
    if not isinstance(doc, dict):
        raise ArtifactParseError("$", "artifact must be a JSON object")
    consumer = _party(doc, "consumer")
    provider = _party(doc, "provider")
    raw_interactions = _require(doc, "interactions", "")
    if not isinstance(raw_interactions, list):
        raise ArtifactParseError("interactions", "expected an array")
    interactions = [_decode_interaction(raw, f"interactions[{i}]") for i, raw in enumerate(raw_interactions)]
    return ContractArtifact(consumer=consumer, provider=provider, interactions=interactions)


def loads(text: Union[str, bytes]) -> ContractArtifact:
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as e:
        raise ArtifactParseError("$", f"invalid JSON ({e.msg} at line {e.lineno})") from e
    return from_document(doc)


def read_artifact(path: Union[str, Path]) -> ContractArtifact:
    artifact = loads(Path(path).read_text(encoding="utf-8"))
    log.info(
        "contract artifact loaded",
        extra={"extra": {"path": str(path), "interactions": len(artifact.interactions)}},
    )
    return artifact
