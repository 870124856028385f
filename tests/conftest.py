"""
conftest.py — Shared fixtures for the contract exchange test suite.

Place at: tests/conftest.py

What this does:
  - Provides a fake weather provider (FastAPI app) with a mutable forecast table,
    a TestClient for it, and state hooks that seed the table.
  - Provides the "forecast for Hamburg" interaction used across the suite.
  - Clears the cached settings after every test so CDC_* env overrides never leak.
"""

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from cdc.core.settings import get_settings
from cdc.registry import StateHookRegistry
from cdc.schemas import Interaction, RequestPattern, ResponsePattern
from cdc.services.matcher import exact

HAMBURG = "53.5511,9.9937"


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def forecasts():
    # coords -> summary; emptied for every test
    return {}


@pytest.fixture
def weather_app(forecasts):
    app = FastAPI()

    @app.get("/{coords}")
    def forecast(coords: str):
        summary = forecasts.get(coords)
        if summary is None:
            raise HTTPException(status_code=404, detail="no forecast")
        lat, lon = coords.split(",")
        return {
            "latitude": float(lat),
            "longitude": float(lon),
            "timezone": "Europe/Berlin",
            "currently": {"summary": summary, "icon": summary.lower() + "-icon", "temperature": 12.3},
        }

    return app


@pytest.fixture
def provider_client(weather_app):
    with TestClient(weather_app) as client:
        yield client


@pytest.fixture
def weather_hooks(forecasts):
    hooks = StateHookRegistry()

    @hooks.register("weather forecast data")
    def _rain_in_hamburg():
        forecasts[HAMBURG] = "Rain"

    @hooks.register("no forecast available")
    def _nothing():
        forecasts.clear()

    return hooks


@pytest.fixture
def hamburg_interaction():
    return Interaction(
        description="forecast for Hamburg",
        provider_state="weather forecast data",
        request=RequestPattern(method="GET", path=exact(f"/{HAMBURG}")),
        response=ResponsePattern(status=200, body={"summary": exact("Rain")}),
    )
