import datetime
import logging
import re

from openai import OpenAI
from google import genai

from flux.config import Config
from flux.errors import AdviceGenerationError
from flux.models import AdviceResult
from flux.replies import format_crops
from flux.utility import run_blocking

logger = logging.getLogger("flux.ai_service")

ADVICE_PROMPT = """You are an expert agricultural advisor. Provide farming advice for a farmer with the following details:

Farmer Profile:
- Name: {name}
- Crops: {crops}
- Location: {location}
- Language: {language}
- Season: {season}

Weather Data:
- Temperature: {temperature:.1f}°C
- Humidity: {humidity:.1f}%
- Rainfall: {rainfall:.1f}mm
- Condition: {condition}

Market Data ({market_crop}):
- Price: {price:.2f} {currency} per {unit}
- Trend: {trend}

Please provide concise, actionable advice in exactly this format, one line each:
1. Planting advice: (1-2 sentences)
2. Irrigation advice: (1-2 sentences)
3. Harvest advice: (1-2 sentences)
4. Market advice: (1-2 sentences)
5. General advice: (1-2 sentences)

Keep responses practical and specific to the farmer's location and crops. Use simple language.
Write the advice in {language}, but keep the English labels before each colon."""

FEEDBACK_SYSTEM_PROMPT = (
    "You are a friendly agricultural extension assistant. A farmer has sent an update about their farm. "
    "Acknowledge it in one or two short sentences, mention how it will help future recommendations, "
    "and add one practical tip if the update describes a problem. Plain text only, suitable for WhatsApp. "
    "Reply in the farmer's preferred language."
)

ADVICE_SECTIONS = ("planting", "irrigation", "harvest", "market", "general")

_SECTION_RE = re.compile(
    r"^\s*[*_#]*\s*(?:\d+\s*[.)]\s*)?[*_#\s]*(planting|irrigation|harvest|market|general)\b[^:\n]*:(.*)$",
    re.IGNORECASE,
)

CONFIDENCE_STRUCTURED = 90
CONFIDENCE_PARTIAL = 85


def _clean(text):
    return text.strip().strip("*_").strip()


def default_advice(crops):
    return {
        "planting": "Based on current conditions, follow optimal planting schedules for your crops.",
        "irrigation": "Monitor soil moisture and adjust irrigation based on weather conditions.",
        "harvest": f"Your {format_crops(crops)} crops should be ready for harvest based on growth conditions.",
        "market": "Monitor market trends and prices for optimal selling timing.",
        "general": "Continue monitoring your crops regularly and maintain proper farming practices.",
    }


def parse_advice_response(text, crops, generated_at=None):
    """Split a numbered/labelled model answer into the five advice fields.

    Missing sections keep generic defaults. When no section is recognised the
    whole answer becomes the general advice.
    """
    text = (text or "").strip()
    if not text:
        raise AdviceGenerationError("Empty advice response")

    lines = text.splitlines()
    found = {}
    for index, line in enumerate(lines):
        match = _SECTION_RE.match(line)
        if not match:
            continue
        key = match.group(1).lower()
        if key in found:
            continue
        body = _clean(match.group(2))
        if not body:
            body = next((_clean(l) for l in lines[index + 1:] if _clean(l)), "")
        if body:
            found[key] = body

    advice = default_advice(crops)
    if found:
        advice.update(found)
    else:
        advice["general"] = text

    return AdviceResult(
        **advice,
        confidence=CONFIDENCE_STRUCTURED if len(found) == len(ADVICE_SECTIONS) else CONFIDENCE_PARTIAL,
        generated_at=generated_at or datetime.datetime.now(datetime.timezone.utc).isoformat(),
    )


def build_advice_prompt(request):
    profile, weather, market = request.profile, request.weather, request.market
    return ADVICE_PROMPT.format(
        name=profile.name,
        crops=format_crops(profile.crops),
        location=profile.location,
        language=profile.language,
        season=request.season,
        temperature=weather.temperature,
        humidity=weather.humidity,
        rainfall=weather.rainfall,
        condition=weather.condition,
        market_crop=market.crop_type,
        price=market.price,
        currency=market.currency,
        unit=market.unit,
        trend=market.trend,
    )


class AIService:
    """Gemini writes the advice; OpenAI acknowledges feedback."""

    def __init__(self, gemini_client=None, openai_client=None, gemini_model=None, openai_model=None):
        self._gemini = gemini_client
        self._openai = openai_client
        self._gemini_model = gemini_model or Config.gemini_model
        self._openai_model = openai_model or Config.openai_model

    def _gemini_client(self):
        if self._gemini is None:
            if not Config.gemini_api_key:
                raise AdviceGenerationError("GEMINI_API_KEY is not configured")
            self._gemini = genai.Client(api_key=Config.gemini_api_key)
        return self._gemini

    def _openai_client(self):
        if self._openai is None:
            if not Config.openai_api_key:
                raise AdviceGenerationError("OPENAI_API_KEY is not configured")
            self._openai = OpenAI(api_key=Config.openai_api_key)
        return self._openai

    def generate_advice_sync(self, request):
        prompt = build_advice_prompt(request)
        try:
            response = self._gemini_client().models.generate_content(
                model=self._gemini_model,
                contents=prompt,
                config={"temperature": 0.4},
            )
            raw = (response.text or "").strip()
        except AdviceGenerationError:
            raise
        except Exception as exc:
            raise AdviceGenerationError(f"Gemini error: {exc}") from exc

        return parse_advice_response(raw, request.profile.crops)

    def process_feedback_sync(self, profile, feedback):
        try:
            completion = self._openai_client().chat.completions.create(
                model=self._openai_model,
                messages=[
                    {"role": "system", "content": FEEDBACK_SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": (
                            f"Farmer: {profile.name}\nCrops: {format_crops(profile.crops)}\n"
                            f"Location: {profile.location}\nLanguage: {profile.language}\n"
                            f"Feedback: {feedback}"
                        ),
                    },
                ],
                temperature=0.5,
            )
            content = completion.choices[0].message.content
        except AdviceGenerationError:
            raise
        except Exception as exc:
            raise AdviceGenerationError(f"OpenAI error: {exc}") from exc

        content = (content or "").strip()
        if not content:
            raise AdviceGenerationError("Empty feedback acknowledgment")
        return content

    async def generate_advice(self, request):
        advice = await run_blocking(self.generate_advice_sync, request)
        logger.info("[AI] advice generated | farmer=%s | confidence=%s", request.profile.phone, advice.confidence)
        return advice

    async def process_feedback(self, profile, feedback):
        return await run_blocking(self.process_feedback_sync, profile, feedback)
