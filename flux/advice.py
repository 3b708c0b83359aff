import datetime
import logging

import anyio

from flux.message import is_group_chat
from flux.models import AdviceRequest, ConversationState, MarketData, WeatherData
from flux.replies import (
    MSG_ADVICE_FAILED,
    MSG_ADVICE_REQUEST,
    MSG_AI_LOADING,
    MSG_REGISTER_FIRST_ADVICE,
    format_advice,
)

logger = logging.getLogger("flux.advice")

DEFAULT_PROGRESS_DELAYS = (3.0, 3.0, 2.0)

RAINY_SEASON = "Rainy Season"
DRY_SEASON = "Dry Season"
_RAINY_MONTHS = range(4, 11)


def current_season(today):
    return RAINY_SEASON if today.month in _RAINY_MONTHS else DRY_SEASON


def fallback_weather(today):
    return WeatherData(
        temperature=25.0,
        humidity=60.0,
        rainfall=10.0,
        condition="Sunny",
        date=today.isoformat(),
    )


def fallback_market(crop_type, location, today):
    return MarketData(
        crop_type=crop_type,
        price=2.50,
        currency="$",
        unit="kg",
        location=location,
        trend="stable",
        date=today.isoformat(),
    )


class AdviceFlow:
    """Staged advice delivery: acknowledge, show progress, fetch context, ask the AI.

    Weather and market lookups never abort the flow; they fall back to fixed
    snapshots. An AI failure aborts with a retry message and writes nothing.
    """

    def __init__(
        self,
        store,
        sender,
        weather,
        market,
        ai,
        progress_delays=DEFAULT_PROGRESS_DELAYS,
        timeout=None,
        today=datetime.date.today,
    ):
        self._store = store
        self._sender = sender
        self._weather = weather
        self._market = market
        self._ai = ai
        self._delays = tuple(progress_delays)
        self._timeout = timeout
        self._today = today

    async def handle(self, inbound, session):
        if is_group_chat(inbound.chat):
            return

        profile = session.farmer_profile
        if profile is None:
            await self._reply(inbound, MSG_REGISTER_FIRST_ADVICE)
            return

        logger.info("[ADVICE] request | user=%s | location=%s", inbound.sender, profile.location)
        await self._reply(inbound, MSG_ADVICE_REQUEST)

        for index, text in enumerate(MSG_AI_LOADING):
            await self._reply(inbound, text)
            await anyio.sleep(self._delay(index))

        today = self._today()
        context = {}
        async with anyio.create_task_group() as tg:
            tg.start_soon(self._fetch_weather, profile, today, context)
            tg.start_soon(self._fetch_market, profile, today, context)

        request = AdviceRequest(
            profile=profile,
            weather=context["weather"],
            market=context["market"],
            season=current_season(today),
        )

        try:
            with anyio.fail_after(self._timeout):
                advice = await self._ai.generate_advice(request)
        except Exception:
            logger.error("[ADVICE] generation failed | user=%s", inbound.sender, exc_info=True)
            await self._reply(inbound, MSG_ADVICE_FAILED)
            return

        await self._reply(inbound, format_advice(advice, request.weather, request.market))
        await self._store.merge(inbound.sender, {"conversation_state": ConversationState.IDLE})
        logger.info("[ADVICE] delivered | user=%s | confidence=%s", inbound.sender, advice.confidence)

    def _delay(self, index):
        return self._delays[index] if index < len(self._delays) else 0

    async def _fetch_weather(self, profile, today, context):
        try:
            with anyio.fail_after(self._timeout):
                context["weather"] = await self._weather.get_weather(profile.location)
        except Exception as exc:
            logger.warning("[ADVICE] weather unavailable for %s, using defaults: %r", profile.location, exc)
            context["weather"] = fallback_weather(today)

    async def _fetch_market(self, profile, today, context):
        crop = profile.primary_crop
        try:
            with anyio.fail_after(self._timeout):
                context["market"] = await self._market.get_market(crop, profile.location)
        except Exception as exc:
            logger.warning("[ADVICE] market data unavailable for %s, using defaults: %r", crop, exc)
            context["market"] = fallback_market(crop, profile.location, today)

    async def _reply(self, inbound, text):
        await self._sender.send_text(inbound.sender, text, inbound.chat)
