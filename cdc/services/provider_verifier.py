#!/usr/bin/env python3
"""
provider_verifier.py — Replay a contract artifact against a provider.

Place at: cdc/services/provider_verifier.py

What this does:
  - For every interaction, in artifact order:
      1. runs the state setup hook registered for its provider state,
      2. sends the request pattern rendered as a concrete request,
      3. matches the actual response against the response pattern,
      4. records a VerificationResult and moves on, even after a failure.
  - Returns a VerificationReport that passes only if every interaction passed.

Key functions:
  - ProviderVerifier(client, hooks).verify(artifact) -> VerificationReport
  - ProviderVerifier.verify_interaction(interaction) -> VerificationResult

Examples:
  from fastapi.testclient import TestClient
  verifier = ProviderVerifier(TestClient(app), hooks)
  report = verifier.verify(read_artifact("pacts/weather-client-weather-api.json"))
  assert report.passed, report.summary()

  # against a running provider
  verifier = ProviderVerifier(make_client("http://127.0.0.1:8000"), hooks, timeout=2.0)

Notes:
  - A provider state with no registered hook raises MissingStateHook; the
    exception carries the results gathered up to that point.
  - Interactions with an empty provider state need no hook.
  - concurrent=True runs interactions on a thread pool. Hooks must then be
    isolated per interaction; all hooks are checked before anything runs.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Mapping, Optional, Union

import httpx

from cdc.core.errors import MissingStateHook
from cdc.core.settings import get_settings
from cdc.registry import StateHook, StateHookRegistry
from cdc.schemas import (
    CapturedResponse,
    ContractArtifact,
    Interaction,
    Outcome,
    VerificationReport,
    VerificationResult,
)
from cdc.services.matcher import match_response, render, render_mapping
from shared.http import decode_body

log = logging.getLogger(__name__)

TIMEOUT_REASON = "Timeout"


class ProviderVerifier:
    def __init__(
        self,
        client: httpx.Client,
        state_hooks: Union[StateHookRegistry, Mapping[str, StateHook], None] = None,
        *,
        timeout: Optional[float] = None,
        concurrent: bool = False,
        max_workers: Optional[int] = None,
    ):
        cfg = get_settings()
        self.client = client
        if isinstance(state_hooks, StateHookRegistry):
            self.hooks = state_hooks
        else:
            self.hooks = StateHookRegistry(state_hooks)
        self.timeout = timeout if timeout is not None else cfg.request_timeout_secs
        self.concurrent = concurrent
        self.max_workers = max_workers or cfg.verify_workers

    # ---------- run ----------

    def verify(self, artifact: ContractArtifact) -> VerificationReport:
        report = VerificationReport(consumer=artifact.consumer, provider=artifact.provider)
        if self.concurrent:
            for interaction in artifact.interactions:
                self._hook_for(interaction)
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                report.results.extend(pool.map(self.verify_interaction, artifact.interactions))
        else:
            for interaction in artifact.interactions:
                try:
                    self._hook_for(interaction)
                except MissingStateHook as e:
                    e.results = list(report.results)
                    log.error(
                        "missing state hook, aborting verification",
                        extra={"extra": {"state": e.provider_state, "completed": len(e.results)}},
                    )
                    raise
                report.results.append(self.verify_interaction(interaction))

        log.info("provider verification finished", extra={"extra": report.summary()})
        return report

    def verify_interaction(self, interaction: Interaction) -> VerificationResult:
        hook = self._hook_for(interaction)
        if hook is not None:
            try:
                hook()
            except Exception as e:
                log.exception("state setup hook failed", extra={"extra": {"state": interaction.provider_state}})
                return self._fail(interaction, f"state setup failed: {e}")

        try:
            response = self._send(interaction)
        except httpx.TimeoutException:
            return self._fail(interaction, TIMEOUT_REASON)
        except httpx.HTTPError as e:
            return self._fail(interaction, f"request failed: {e}")

        mismatch = match_response(interaction.response, response)
        if mismatch is not None:
            return self._fail(interaction, str(mismatch), mismatch=mismatch, actual=response)
        log.info(
            "interaction verified",
            extra={"extra": {"description": interaction.description, "state": interaction.provider_state}},
        )
        return VerificationResult(
            description=interaction.description,
            provider_state=interaction.provider_state,
            outcome=Outcome.PASS,
            actual_response=response,
        )

    # ---------- helpers ----------

    def _hook_for(self, interaction: Interaction) -> Optional[StateHook]:
        if not interaction.provider_state:
            return None
        return self.hooks.get(interaction.provider_state)

    def _send(self, interaction: Interaction) -> CapturedResponse:
        req = interaction.request
        headers = render_mapping(req.headers)
        kwargs: Dict[str, Any] = {}
        if req.query:
            kwargs["params"] = render_mapping(req.query)
        if req.body is not None:
            body = render(req.body)
            content_type = next((v for k, v in headers.items() if k.lower() == "content-type"), "")
            if isinstance(body, str) and content_type and "json" not in content_type.lower():
                kwargs["content"] = body
            else:
                kwargs["json"] = body

        r = self.client.request(
            req.method,
            render(req.path),
            headers=headers or None,
            timeout=self.timeout,
            **kwargs,
        )
        return CapturedResponse(
            status=r.status_code,
            headers=dict(r.headers),
            body=decode_body(r.content, r.headers.get("content-type")),
        )

    def _fail(self, interaction: Interaction, reason: str, *, mismatch=None, actual=None) -> VerificationResult:
        log.warning(
            "interaction failed verification",
            extra={"extra": {"description": interaction.description, "state": interaction.provider_state,
                             "reason": reason}},
        )
        return VerificationResult(
            description=interaction.description,
            provider_state=interaction.provider_state,
            outcome=Outcome.FAIL,
            reason=reason,
            mismatch=mismatch,
            actual_response=actual,
        )
