#!/usr/bin/env python3
"""
consumer_recorder.py — Consumer side of a consumer-driven contract test.

Place at: cdc/services/consumer_recorder.py

What this does:
  - Collects the interactions a consumer expects from its provider.
  - serve() freezes them, starts a stub provider on a local port and yields it
    so the client code under test can be pointed at stub.url.
  - On a clean exit it checks that every declared interaction was invoked at
    least once and that no request went unmatched, then writes the contract
    artifact for the provider side to verify.

Key functions:
  - ConsumerRecorder.given(state).upon_receiving(desc).with_request(...).will_respond_with(...)
  - ConsumerRecorder.add_interaction(interaction)
  - ConsumerRecorder.serve() -> context manager yielding a StubServer
  - ConsumerRecorder.verify() -> ConsumerReport

Examples:
  recorder = ConsumerRecorder("weather-client", "weather-api", port=0, pact_dir="pacts")
  (recorder.given("weather forecast data")
      .upon_receiving("forecast for Hamburg")
      .with_request("GET", "/53.5511,9.9937")
      .will_respond_with(200, body={"currently": {"summary": like("Rain")}}))

  with recorder.serve() as stub:
      WeatherClient(stub.url).fetch_forecast(53.5511, 9.9937)

Notes:
  - An exception raised inside the with-block skips verification and writing
    but the stub is still stopped and its port released.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from cdc.core.errors import (
    ConsumerVerificationError,
    ContractError,
    NoInteractionsDeclared,
    UnexercisedInteraction,
    UnmatchedStubRequest,
)
from cdc.core.settings import get_settings
from cdc.schemas import ContractArtifact, Interaction, RequestPattern, ResponsePattern
from cdc.services.artifact import write_artifact
from cdc.services.interaction_store import InteractionStore
from cdc.stub.server import InvocationLedger, StubServer, create_stub_app

log = logging.getLogger(__name__)


@dataclass
class ConsumerReport:
    unexercised: List[UnexercisedInteraction] = field(default_factory=list)
    unmatched: List[UnmatchedStubRequest] = field(default_factory=list)
    invocations: Dict[Tuple[str, str], int] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return not self.unexercised and not self.unmatched

    @property
    def failures(self) -> List[ContractError]:
        return [*self.unexercised, *self.unmatched]


class InteractionBuilder:
    """Fluent declaration of one interaction; recorded by will_respond_with()."""

    def __init__(self, recorder: "ConsumerRecorder", provider_state: str = ""):
        self._recorder = recorder
        self._state = provider_state
        self._description: Optional[str] = None
        self._request: Optional[RequestPattern] = None

    def upon_receiving(self, description: str) -> "InteractionBuilder":
        self._description = description
        return self

    def with_request(
        self,
        method: str,
        path: Any,
        *,
        query: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ) -> "InteractionBuilder":
        self._request = RequestPattern(method=method, path=path, query=query, headers=headers, body=body)
        return self

    def will_respond_with(
        self,
        status: int,
        *,
        headers: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ) -> Interaction:
        if self._description is None or self._request is None:
            raise ContractError("upon_receiving() and with_request() must be called before will_respond_with()")
        interaction = Interaction(
            description=self._description,
            provider_state=self._state,
            request=self._request,
            response=ResponsePattern(status=status, headers=headers, body=body),
        )
        self._recorder.add_interaction(interaction)
        return interaction


class ConsumerRecorder:
    def __init__(
        self,
        consumer: Optional[str] = None,
        provider: Optional[str] = None,
        *,
        host: Optional[str] = None,
        port: Optional[int] = None,
        pact_dir: Optional[str] = None,
        write: bool = True,
    ):
        cfg = get_settings()
        self.consumer = consumer or cfg.consumer_name
        self.provider = provider or cfg.provider_name
        self.host = host or cfg.stub_host
        self.port = cfg.stub_port if port is None else port
        self.pact_dir = pact_dir if pact_dir is not None else cfg.pact_dir
        self.write = write
        self.store = InteractionStore()
        self._ledger: Optional[InvocationLedger] = None
        self.artifact_path: Optional[Path] = None

    # ---------- declaring ----------

    def given(self, provider_state: str) -> InteractionBuilder:
        return InteractionBuilder(self, provider_state)

    def upon_receiving(self, description: str) -> InteractionBuilder:
        return InteractionBuilder(self).upon_receiving(description)

    def add_interaction(self, interaction: Interaction) -> None:
        self.store.record(interaction)
        log.debug(
            "interaction declared",
            extra={"extra": {"state": interaction.provider_state, "description": interaction.description}},
        )

    # ---------- serving ----------

    @contextmanager
    def serve(self, verify: bool = True) -> Iterator[StubServer]:
        if len(self.store) == 0:
            raise NoInteractionsDeclared()
        self.store.freeze()
        self._ledger = InvocationLedger(self.store.all_interactions())
        server = StubServer(create_stub_app(self.store, self._ledger), host=self.host, port=self.port)
        with server:
            yield server
        if verify:
            self.verify_or_raise()
            if self.write and self.pact_dir:
                self.artifact_path = write_artifact(self.artifact(), self.pact_dir)

    def verify(self) -> ConsumerReport:
        if self._ledger is None:
            raise ContractError("verify() called before the stub server was started")
        report = ConsumerReport(unmatched=self._ledger.unmatched)
        for interaction in self.store.all_interactions():
            count = self._ledger.count(interaction)
            report.invocations[interaction.key] = count
            if count == 0:
                report.unexercised.append(
                    UnexercisedInteraction(interaction.provider_state, interaction.description)
                )
        log.info(
            "consumer verification finished",
            extra={"extra": {
                "passed": report.passed,
                "unexercised": [u.description for u in report.unexercised],
                "unmatched": len(report.unmatched),
            }},
        )
        return report

    def verify_or_raise(self) -> ConsumerReport:
        report = self.verify()
        if not report.passed:
            raise ConsumerVerificationError(report.failures)
        return report

    def artifact(self) -> ContractArtifact:
        return self.store.to_artifact(self.consumer, self.provider)
