# cdc/weather/client.py
"""
HTTP client for the external weather API.

This is the consumer the contract tests exercise: it calls
GET /<lat>,<lon> and reads only currently.summary from the payload, so the
provider is free to change everything else.

Usage:
------
    from cdc.weather.client import WeatherClient

    with WeatherClient("https://api.example-weather.test/forecast/KEY") as weather:
        print(weather.fetch_forecast(53.5511, 9.9937).summary)
"""

from __future__ import annotations

from typing import Optional

import httpx
from pydantic import BaseModel

from cdc.services.tolerant_reader import read_model
from shared.http import make_client

FORECAST_FIELDS = {"currently.summary": "string"}


class WeatherResponse(BaseModel):
    summary: str


class WeatherClient:
    def __init__(self, base_url: str, *, client: Optional[httpx.Client] = None, timeout: float = 5.0):
        self._client = client or make_client(base_url, timeout=timeout)

    def fetch_forecast(self, latitude: float, longitude: float) -> WeatherResponse:
        r = self._client.get(f"/{latitude},{longitude}")
        r.raise_for_status()
        return read_model(r.content, WeatherResponse, FORECAST_FIELDS)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "WeatherClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
