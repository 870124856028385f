# cdc/core/errors.py
"""
Exception taxonomy for the contract exchange engine.

Configuration problems (frozen store, bad artifact, missing state hook, busy
port) are raised immediately. Contract violations found while serving or
verifying are collected and reported together.
"""

from __future__ import annotations

from typing import Any, List, Optional


class ContractError(Exception):
    """Base exception for everything raised by the engine."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ----------------------------
# Interaction store
# ----------------------------

class DuplicateInteraction(ContractError):
    def __init__(self, provider_state: str, description: str):
        super().__init__(
            f"Interaction already recorded: state={provider_state!r} description={description!r}"
        )
        self.provider_state = provider_state
        self.description = description


class StoreFrozen(ContractError):
    def __init__(self, description: str):
        super().__init__(f"Cannot record {description!r}: interaction store is frozen")
        self.description = description


# ----------------------------
# Consumer side
# ----------------------------

class NoInteractionsDeclared(ContractError):
    def __init__(self):
        super().__init__("A consumer test must declare at least one interaction")


class PortInUse(ContractError):
    def __init__(self, host: str, port: int, reason: str = ""):
        super().__init__(f"Stub server cannot bind {host}:{port} {reason}".rstrip())
        self.host = host
        self.port = port


class UnmatchedStubRequest(ContractError):
    def __init__(self, method: str, path: str, query: Optional[dict] = None, body: Any = None):
        super().__init__(f"No interaction matched {method} {path}")
        self.method = method
        self.path = path
        self.query = query or {}
        self.body = body

    def to_dict(self) -> dict:
        return {"method": self.method, "path": self.path, "query": self.query, "body": self.body}


class UnexercisedInteraction(ContractError):
    def __init__(self, provider_state: str, description: str):
        super().__init__(
            f"Interaction {description!r} (state {provider_state!r}) was never invoked"
        )
        self.provider_state = provider_state
        self.description = description


class ConsumerVerificationError(ContractError):
    """Raised at stub teardown when the client under test broke the contract."""

    def __init__(self, failures: List[ContractError]):
        lines = ["Consumer contract verification failed:"]
        lines.extend(f"  - {f.message}" for f in failures)
        super().__init__("\n".join(lines))
        self.failures = failures


# ----------------------------
# Artifact
# ----------------------------

class ArtifactParseError(ContractError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Malformed contract artifact at {path}: {reason}")
        self.path = path
        self.reason = reason


# ----------------------------
# Provider side
# ----------------------------

class MissingStateHook(ContractError):
    def __init__(self, provider_state: str, results: Optional[list] = None):
        super().__init__(f"No state setup hook registered for {provider_state!r}")
        self.provider_state = provider_state
        # results gathered before the run stopped
        self.results = list(results or [])


# ----------------------------
# Tolerant reader
# ----------------------------

class ParseError(ContractError):
    pass


class MissingField(ParseError):
    def __init__(self, path: str):
        super().__init__(f"Missing required field {path!r}")
        self.path = path


class TypeMismatch(ParseError):
    def __init__(self, path: str, expected: str, actual: str):
        super().__init__(f"Field {path!r} should be {expected}, got {actual}")
        self.path = path
        self.expected = expected
        self.actual = actual
