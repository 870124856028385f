# cdc/schemas.py
"""
Pydantic schemas for the contract exchange engine.

Covers:
  - Matchers (exact, regex, type, each-like) placed anywhere inside a pattern
  - Interactions (request pattern + response pattern, keyed by provider state)
  - Contract artifacts (consumer, provider, ordered interactions)
  - Captured messages and verification results

Notes:
  - Patterns are plain JSON-like structures in which any node may be a Matcher.
    A plain scalar means exact equality, a plain dict is matched field-subset,
    a plain list is matched position by position.
  - Interactions are frozen once built; identity is (provider_state, description).
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Kind = Literal["string", "number", "boolean", "array", "object", "null"]

# factories, so every default example is a fresh object
KIND_DEFAULTS: Dict[str, Callable[[], Any]] = {
    "string": str,
    "number": int,
    "boolean": bool,
    "array": list,
    "object": dict,
    "null": lambda: None,
}


def kind_of(value: Any) -> str:
    """Structural kind of a decoded JSON value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def wire_form(node: Any) -> Any:
    """Tuples become lists, recursively, so a stored pattern equals its JSON form."""
    if isinstance(node, (list, tuple)):
        return [wire_form(x) for x in node]
    if isinstance(node, dict):
        return {k: wire_form(v) for k, v in node.items()}
    return node


# ----------------------------
# Matchers
# ----------------------------

class Matcher(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: ClassVar[str] = ""

    def example(self) -> Any:
        raise NotImplementedError

    def describe(self) -> str:
        return self.tag


class Exact(Matcher):
    tag: ClassVar[str] = "exact"
    value: Any = None

    @field_validator("value", mode="before")
    @classmethod
    def _wire(cls, v):
        return wire_form(v)

    def example(self) -> Any:
        return self.value

    def describe(self) -> str:
        return repr(self.value)


class Regex(Matcher):
    tag: ClassVar[str] = "regex"
    pattern: str
    value: str

    @model_validator(mode="after")
    def _example_matches(self):
        try:
            compiled = re.compile(self.pattern)
        except re.error as e:
            raise ValueError(f"invalid regex {self.pattern!r}: {e}") from e
        if compiled.fullmatch(self.value) is None:
            raise ValueError(f"example {self.value!r} does not match /{self.pattern}/")
        return self

    def example(self) -> Any:
        return self.value

    def describe(self) -> str:
        return f"string matching /{self.pattern}/"


class Type(Matcher):
    tag: ClassVar[str] = "type"
    kind: Kind
    value: Any = None

    @model_validator(mode="before")
    @classmethod
    def _default_example(cls, data):
        if isinstance(data, dict) and data.get("value") is None and data.get("kind") in KIND_DEFAULTS:
            data = {**data, "value": KIND_DEFAULTS[data["kind"]]()}
        elif isinstance(data, dict) and "value" in data:
            data = {**data, "value": wire_form(data["value"])}
        return data

    @model_validator(mode="after")
    def _example_has_kind(self):
        if kind_of(self.value) != self.kind:
            raise ValueError(f"example {self.value!r} is not of kind {self.kind}")
        return self

    def example(self) -> Any:
        return self.value

    def describe(self) -> str:
        return f"any {self.kind}"


class EachLike(Matcher):
    tag: ClassVar[str] = "each-like"
    template: Any
    min: int = Field(1, ge=0)

    @field_validator("template", mode="before")
    @classmethod
    def _wire(cls, v):
        return wire_form(v)

    def example(self) -> Any:
        # resolved recursively by the renderer
        return [self.template] * max(self.min, 1)

    def describe(self) -> str:
        return f"array of at least {self.min} like template"


MATCHER_TYPES: Dict[str, type] = {m.tag: m for m in (Exact, Regex, Type, EachLike)}


# ----------------------------
# Interactions
# ----------------------------

def _norm_headers(v: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return wire_form(dict(v or {}))


class RequestPattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    path: Any = "/"
    query: Dict[str, Any] = Field(default_factory=dict)
    headers: Dict[str, Any] = Field(default_factory=dict)
    body: Any = None

    @field_validator("method")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()

    @field_validator("path")
    @classmethod
    def _path_kind(cls, v):
        if not isinstance(v, (str, Matcher)):
            raise ValueError("path must be a literal string or a matcher")
        return v

    @field_validator("query", "headers", mode="before")
    @classmethod
    def _mapping(cls, v):
        return _norm_headers(v)

    @field_validator("body", mode="before")
    @classmethod
    def _body(cls, v):
        return wire_form(v)


class ResponsePattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: int = 200
    headers: Dict[str, Any] = Field(default_factory=dict)
    body: Any = None

    @field_validator("headers", mode="before")
    @classmethod
    def _mapping(cls, v):
        return _norm_headers(v)

    @field_validator("body", mode="before")
    @classmethod
    def _body(cls, v):
        return wire_form(v)


class Interaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    provider_state: str = ""
    request: RequestPattern
    response: ResponsePattern

    @property
    def key(self) -> Tuple[str, str]:
        return (self.provider_state, self.description)


class ContractArtifact(BaseModel):
    consumer: str
    provider: str
    interactions: List[Interaction] = Field(default_factory=list)


# ----------------------------
# Captured messages + results
# ----------------------------

class CapturedRequest(BaseModel):
    method: str
    path: str
    query: Dict[str, str] = Field(default_factory=dict)
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = None


class CapturedResponse(BaseModel):
    status: int
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = None


class MatchFailure(BaseModel):
    path: str
    expected: Any = None
    actual: Any = None

    def __str__(self) -> str:
        return f"{self.path}: expected {self.expected!r}, got {self.actual!r}"


class Outcome(str, Enum):
    PASS = "pass"
    FAIL = "fail"


class VerificationResult(BaseModel):
    description: str
    provider_state: str = ""
    outcome: Outcome
    reason: Optional[str] = None
    mismatch: Optional[MatchFailure] = None
    actual_response: Optional[CapturedResponse] = None

    @property
    def passed(self) -> bool:
        return self.outcome == Outcome.PASS


class VerificationReport(BaseModel):
    consumer: str
    provider: str
    results: List[VerificationResult] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results)

    @property
    def failures(self) -> List[VerificationResult]:
        return [r for r in self.results if not r.passed]

    def summary(self) -> dict:
        return {
            "consumer": self.consumer,
            "provider": self.provider,
            "passed": self.passed,
            "count": len(self.results),
            "failures": [
                {
                    "description": r.description,
                    "providerState": r.provider_state,
                    "reason": r.reason,
                    "path": r.mismatch.path if r.mismatch else None,
                }
                for r in self.failures
            ],
        }
