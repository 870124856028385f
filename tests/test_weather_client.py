"""
test_weather_client.py — The weather API consumer in isolation.

Place at: tests/test_weather_client.py
Run from the repo root (folder that contains cdc/).

What this does:
  - Feeds the WeatherClient canned responses through httpx.MockTransport.
  - Asserts it tolerates extra fields, rejects payloads without the summary,
    and surfaces HTTP errors.

Common examples:
  pytest -q tests/test_weather_client.py
"""

import httpx
import pytest

from cdc.core.errors import MissingField
from cdc.weather.client import WeatherClient, WeatherResponse


def _client(handler):
    transport = httpx.MockTransport(handler)
    return WeatherClient("http://weather.test", client=httpx.Client(transport=transport, base_url="http://weather.test"))


def test_reads_summary_and_ignores_the_rest():
    def handler(request):
        assert request.url.path == "/53.5511,9.9937"
        return httpx.Response(200, json={
            "latitude": 53.5511,
            "currently": {"summary": "Rain", "icon": "rain", "precipProbability": 0.8},
            "daily": {"data": []},
        })

    with _client(handler) as weather:
        assert weather.fetch_forecast(53.5511, 9.9937) == WeatherResponse(summary="Rain")


def test_missing_summary_is_rejected():
    with _client(lambda request: httpx.Response(200, json={"currently": {"icon": "rain"}})) as weather:
        with pytest.raises(MissingField):
            weather.fetch_forecast(1.0, 2.0)


def test_http_errors_are_raised():
    with _client(lambda request: httpx.Response(503, text="maintenance")) as weather:
        with pytest.raises(httpx.HTTPStatusError):
            weather.fetch_forecast(1.0, 2.0)
