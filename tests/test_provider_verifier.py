"""
test_provider_verifier.py — Provider side: replaying contracts against a provider.

Place at: tests/test_provider_verifier.py
Run from the repo root (folder that contains cdc/).

What this does:
  - Replays artifacts against the fake weather provider through FastAPI's TestClient.
  - Checks that verification is exhaustive (continues after failures), that a
    missing state hook stops the run after reporting what already ran, and
    that timeouts fail a single interaction.
  - Uses httpx.MockTransport to inspect rendered requests and to simulate timeouts.

Common examples:
  pytest -q tests/test_provider_verifier.py
  pytest -k missing_state -q
"""

import json

import httpx
import pytest

from cdc.core.errors import MissingStateHook
from cdc.schemas import ContractArtifact, Interaction, Outcome, RequestPattern, ResponsePattern
from cdc.services.matcher import exact, like, regex
from cdc.services.provider_verifier import ProviderVerifier

HAMBURG = "53.5511,9.9937"


def _artifact(*interactions):
    return ContractArtifact(consumer="weather-client", provider="weather-api", interactions=list(interactions))


def _forecast(description, state="weather forecast data", summary=like("Rain"), status=200):
    return Interaction(
        description=description,
        provider_state=state,
        request=RequestPattern(method="GET", path=f"/{HAMBURG}"),
        response=ResponsePattern(status=status, body={"currently": {"summary": summary}}),
    )


def test_hamburg_contract_passes(provider_client, weather_hooks, hamburg_interaction):
    contract = Interaction(
        description="forecast for Hamburg",
        provider_state="weather forecast data",
        request=hamburg_interaction.request,
        response=ResponsePattern(status=200, body={"currently": {"summary": exact("Rain")}}),
    )
    report = ProviderVerifier(provider_client, weather_hooks).verify(_artifact(contract))
    assert report.passed
    [result] = report.results
    assert result.outcome == Outcome.PASS
    assert result.actual_response.status == 200
    assert result.actual_response.body["currently"]["icon"] == "rain-icon"


def test_verification_is_exhaustive(provider_client, weather_hooks):
    artifact = _artifact(
        _forecast("expects sun", summary=exact("Sunny")),
        _forecast("missing forecast", state="no forecast available", status=404, summary=like("x")),
        _forecast("any summary"),
    )
    report = ProviderVerifier(provider_client, weather_hooks).verify(artifact)
    assert not report.passed
    assert [r.outcome for r in report.results] == [Outcome.FAIL, Outcome.FAIL, Outcome.PASS]

    sun, missing = report.failures
    assert sun.mismatch.path == "body.currently.summary"
    assert sun.mismatch.actual == "Rain"
    # 404 matches the status but the body lacks "currently"
    assert missing.mismatch.path == "body.currently"

    summary = report.summary()
    assert summary["count"] == 3
    assert [f["path"] for f in summary["failures"]] == ["body.currently.summary", "body.currently"]


def test_missing_state_hook_reports_earlier_results(provider_client, weather_hooks):
    artifact = _artifact(
        _forecast("forecast for Hamburg"),
        _forecast("forecast during a storm", state="storm warning active"),
    )
    with pytest.raises(MissingStateHook) as exc:
        ProviderVerifier(provider_client, weather_hooks).verify(artifact)
    assert exc.value.provider_state == "storm warning active"
    assert [r.description for r in exc.value.results] == ["forecast for Hamburg"]
    assert exc.value.results[0].passed


def test_empty_state_needs_no_hook(provider_client):
    interaction = Interaction(
        description="unknown location",
        request=RequestPattern(method="GET", path="/0,0"),
        response=ResponsePattern(status=404, body={"detail": like("no forecast")}),
    )
    report = ProviderVerifier(provider_client, {}).verify(_artifact(interaction))
    assert report.passed


def test_failing_hook_fails_only_its_interaction(provider_client, weather_hooks):
    def broken():
        raise RuntimeError("fixture database down")

    weather_hooks.add("broken state", broken)
    artifact = _artifact(_forecast("uses broken state", state="broken state"), _forecast("fine"))
    report = ProviderVerifier(provider_client, weather_hooks).verify(artifact)
    first, second = report.results
    assert not first.passed
    assert "fixture database down" in first.reason
    assert second.passed


def test_timeout_fails_single_interaction():
    def handler(request):
        if request.url.path == "/slow":
            raise httpx.ReadTimeout("provider did not answer", request=request)
        return httpx.Response(200, json={"ok": True})

    client = httpx.Client(transport=httpx.MockTransport(handler), base_url="http://provider.test")
    artifact = _artifact(
        Interaction(description="slow", request=RequestPattern(path="/slow"), response=ResponsePattern(status=200)),
        Interaction(description="fast", request=RequestPattern(path="/fast"),
                    response=ResponsePattern(status=200, body={"ok": True})),
    )
    report = ProviderVerifier(client, timeout=0.5).verify(artifact)
    slow, fast = report.results
    assert slow.reason == "Timeout"
    assert slow.actual_response is None
    assert fast.passed


def test_request_is_rendered_from_pattern():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["accept"] = request.headers.get("accept")
        seen["json"] = request.read()
        return httpx.Response(201, json={"id": 7, "name": "Hamburg", "created": "2024-01-31"})

    client = httpx.Client(transport=httpx.MockTransport(handler), base_url="http://provider.test")
    interaction = Interaction(
        description="save a location",
        request=RequestPattern(
            method="POST",
            path=regex(r"/users/\d+/locations", "/users/42/locations"),
            query={"units": like("si")},
            headers={"Accept": "application/json"},
            body={"name": like("Hamburg"), "lat": like(53.5511)},
        ),
        response=ResponsePattern(
            status=201,
            body={"id": like(1), "created": regex(r"\d{4}-\d{2}-\d{2}", "2000-01-01")},
        ),
    )
    report = ProviderVerifier(client).verify(_artifact(interaction))
    assert report.passed
    assert seen["method"] == "POST"
    assert seen["path"] == "/users/42/locations"
    assert seen["params"] == {"units": "si"}
    assert seen["accept"] == "application/json"
    assert json.loads(seen["json"]) == {"name": "Hamburg", "lat": 53.5511}


def test_concurrent_mode_keeps_artifact_order(provider_client, weather_hooks):
    artifact = _artifact(*[_forecast(f"forecast #{n}") for n in range(6)])
    report = ProviderVerifier(provider_client, weather_hooks, concurrent=True, max_workers=3).verify(artifact)
    assert report.passed
    assert [r.description for r in report.results] == [f"forecast #{n}" for n in range(6)]


def test_concurrent_mode_checks_hooks_before_running(weather_hooks):
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(200)

    client = httpx.Client(transport=httpx.MockTransport(handler), base_url="http://provider.test")
    artifact = _artifact(_forecast("fine"), _forecast("unknown", state="storm warning active"))
    with pytest.raises(MissingStateHook):
        ProviderVerifier(client, weather_hooks, concurrent=True).verify(artifact)
    assert calls == []
