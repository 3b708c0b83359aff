import datetime
import json
import logging

from flux.config import Config
from flux.errors import MarketDataUnavailableError
from flux.models import MarketData
from flux.utility import run_blocking

logger = logging.getLogger("flux.market")


def _same(a, b):
    return (a or "").strip().casefold() == (b or "").strip().casefold()


class MarketService:
    """Crop prices from a JSON price table.

    The file holds ``{"records": [{"Crop", "Location", "Price", "Currency",
    "Unit", "Trend", "Date"}, ...]}``. A record without a Location is the
    fallback price for every location.
    """

    def __init__(self, prices_file=None, today=datetime.date.today):
        self._prices_file = prices_file or Config.market_prices_file
        self._today = today

    def _load_records(self):
        try:
            with open(self._prices_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise MarketDataUnavailableError(f"Cannot read price table {self._prices_file}: {exc}") from exc
        return data.get("records", [])

    def lookup(self, crop_type, location):
        records = [r for r in self._load_records() if _same(r.get("Crop"), crop_type)]
        local = [r for r in records if _same(r.get("Location"), location)]
        general = [r for r in records if not r.get("Location")]
        matches = local or general
        if not matches:
            raise MarketDataUnavailableError(f"No price for {crop_type!r} in {location!r}")

        record = matches[0]
        try:
            return MarketData(
                crop_type=crop_type,
                price=float(record["Price"]),
                currency=record.get("Currency") or "$",
                unit=record.get("Unit") or "kg",
                location=location,
                trend=(record.get("Trend") or "stable").lower(),
                date=record.get("Date") or self._today().isoformat(),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise MarketDataUnavailableError(f"Bad price record for {crop_type!r}: {exc!r}") from exc

    async def get_market(self, crop_type, location):
        market = await run_blocking(self.lookup, crop_type, location)
        logger.info(
            "[MARKET] %s @ %s | %s%.2f/%s | %s",
            crop_type, location, market.currency, market.price, market.unit, market.trend,
        )
        return market
