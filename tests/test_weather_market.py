import json

import pytest
import requests

from flux.errors import MarketDataUnavailableError, WeatherUnavailableError
from flux.market import MarketService
from flux.weather import WeatherService, parse_current_weather

from conftest import TODAY

OWM_PAYLOAD = {
    "weather": [{"main": "Rain", "description": "light rain"}],
    "main": {"temp": 28.4, "humidity": 81},
    "rain": {"1h": 0.6},
    "dt": 1718445600,
    "name": "Lagos",
}


class FakeResponse:
    def __init__(self, payload, status=200):
        self._payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


def test_parse_current_weather():
    weather = parse_current_weather(OWM_PAYLOAD)

    assert weather.temperature == 28.4
    assert weather.humidity == 81.0
    assert weather.rainfall == 0.6
    assert weather.condition == "Light Rain"
    assert weather.date == "2024-06-15"


def test_parse_weather_without_rain_or_timestamp():
    payload = {"weather": [{"main": "Clear"}], "main": {"temp": 30, "humidity": 40}}

    weather = parse_current_weather(payload, today=TODAY)

    assert weather.rainfall == 0.0
    assert weather.condition == "Clear"
    assert weather.date == "2024-06-15"


def test_weather_requires_api_key():
    with pytest.raises(WeatherUnavailableError):
        WeatherService(api_key="").fetch("Lagos")


def test_weather_fetch(monkeypatch):
    seen = {}

    def fake_get(url, params, timeout):
        seen.update(url=url, params=params)
        return FakeResponse(OWM_PAYLOAD)

    monkeypatch.setattr(requests, "get", fake_get)

    weather = WeatherService(api_key="k", api_url="https://weather.test/current").fetch("Lagos")

    assert seen["url"] == "https://weather.test/current"
    assert seen["params"] == {"q": "Lagos", "units": "metric", "appid": "k"}
    assert weather.condition == "Light Rain"


def test_weather_http_errors_are_wrapped(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda url, params, timeout: FakeResponse({}, status=404))

    with pytest.raises(WeatherUnavailableError):
        WeatherService(api_key="k").fetch("Atlantis")


def test_weather_bad_payload_is_wrapped(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda url, params, timeout: FakeResponse({"cod": 200}))

    with pytest.raises(WeatherUnavailableError):
        WeatherService(api_key="k").fetch("Lagos")


@pytest.fixture
def prices_file(tmp_path):
    path = tmp_path / "prices.json"
    path.write_text(json.dumps({"records": [
        {"Crop": "maize", "Location": "", "Price": 2.45, "Currency": "$", "Unit": "kg", "Trend": "Up"},
        {"Crop": "Maize", "Location": "Lagos", "Price": 2.70, "Currency": "NGN", "Unit": "kg", "Trend": "up"},
        {"Crop": "rice", "Location": "Kano", "Price": 2.95, "Unit": "bag", "Date": "2024-06-01"},
    ]}))
    return str(path)


def test_market_prefers_local_price(prices_file):
    market = MarketService(prices_file, today=lambda: TODAY).lookup("maize", "lagos")

    assert market.price == 2.70
    assert market.currency == "NGN"
    assert market.location == "lagos"
    assert market.date == "2024-06-15"


def test_market_falls_back_to_general_price(prices_file):
    market = MarketService(prices_file, today=lambda: TODAY).lookup("maize", "Kaduna")

    assert market.price == 2.45
    assert market.trend == "up"


def test_market_record_defaults(prices_file):
    market = MarketService(prices_file).lookup("rice", "Kano")

    assert market.currency == "$"
    assert market.unit == "bag"
    assert market.trend == "stable"
    assert market.date == "2024-06-01"


def test_market_unknown_crop(prices_file):
    with pytest.raises(MarketDataUnavailableError):
        MarketService(prices_file).lookup("quinoa", "Lagos")


def test_market_missing_file(tmp_path):
    with pytest.raises(MarketDataUnavailableError):
        MarketService(str(tmp_path / "missing.json")).lookup("maize", "Lagos")


async def test_bundled_price_table():
    market = await MarketService().get_market("rice", "Kano")

    assert market.price == 2.95
    assert market.trend == "down"
