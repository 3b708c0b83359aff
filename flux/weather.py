import datetime
import logging

import requests

from flux.config import Config
from flux.errors import WeatherUnavailableError
from flux.models import WeatherData
from flux.utility import run_blocking

logger = logging.getLogger("flux.weather")


def parse_current_weather(payload, today=None):
    """Map an OpenWeatherMap current-weather response onto WeatherData."""
    main = payload["main"]
    conditions = payload.get("weather") or [{}]
    rain = payload.get("rain") or {}

    if payload.get("dt"):
        date = datetime.datetime.fromtimestamp(payload["dt"], tz=datetime.timezone.utc).date()
    else:
        date = today or datetime.date.today()

    return WeatherData(
        temperature=float(main["temp"]),
        humidity=float(main["humidity"]),
        rainfall=float(rain.get("1h", rain.get("3h", 0)) or 0),
        condition=(conditions[0].get("description") or conditions[0].get("main") or "Unknown").title(),
        date=date.isoformat(),
    )


class WeatherService:
    def __init__(self, api_key=None, api_url=None, http_timeout=30):
        self._api_key = Config.weather_api_key if api_key is None else api_key
        self._api_url = api_url or Config.weather_api_url
        self._http_timeout = http_timeout

    def fetch(self, location):
        if not self._api_key:
            raise WeatherUnavailableError("WEATHER_API_KEY is not configured")

        params = {"q": location, "units": "metric", "appid": self._api_key}
        try:
            response = requests.get(self._api_url, params=params, timeout=self._http_timeout)
            response.raise_for_status()
            return parse_current_weather(response.json())
        except requests.RequestException as exc:
            raise WeatherUnavailableError(f"Weather request for {location!r} failed: {exc}") from exc
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise WeatherUnavailableError(f"Unexpected weather payload for {location!r}: {exc!r}") from exc

    async def get_weather(self, location):
        weather = await run_blocking(self.fetch, location)
        logger.info(
            "[WEATHER] %s | %.1fC | %.0f%% | %.1fmm | %s",
            location, weather.temperature, weather.humidity, weather.rainfall, weather.condition,
        )
        return weather
