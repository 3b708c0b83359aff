import datetime

import pytest

from flux.ai_service import parse_advice_response
from flux.conversation import Conversation
from flux.errors import AdviceGenerationError, MarketDataUnavailableError, WeatherUnavailableError
from flux.models import ConversationState, FarmerProfile, MarketData, WeatherData
from flux.session_store import InMemorySessionStore

TODAY = datetime.date(2024, 6, 15)

ADVICE_TEXT = """1. Planting advice: Plant early in the rains.
2. Irrigation advice: Water twice a week.
3. Harvest advice: Harvest when the cobs are dry.
4. Market advice: Sell after the peak glut.
5. General advice: Keep records of inputs."""


class RecordingSender:
    def __init__(self):
        self.sent = []

    async def send_text(self, recipient, text, chat=None):
        self.sent.append((recipient, text))

    def texts(self, recipient=None):
        return [text for to, text in self.sent if recipient is None or to == recipient]


class FakeWeather:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    async def get_weather(self, location):
        self.calls.append(location)
        if self.fail:
            raise WeatherUnavailableError("weather down")
        return WeatherData(temperature=31.0, humidity=70.0, rainfall=4.0, condition="Light Rain", date="2024-06-15")


class FakeMarket:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    async def get_market(self, crop_type, location):
        self.calls.append((crop_type, location))
        if self.fail:
            raise MarketDataUnavailableError("no prices")
        return MarketData(
            crop_type=crop_type, price=1.75, currency="NGN", unit="kg",
            location=location, trend="rising", date="2024-06-14",
        )


class FakeAI:
    def __init__(self, fail_advice=False, fail_feedback=False, acknowledgment="Thanks for the update!"):
        self.fail_advice = fail_advice
        self.fail_feedback = fail_feedback
        self.acknowledgment = acknowledgment
        self.advice_calls = []
        self.feedback_calls = []

    async def generate_advice(self, request):
        self.advice_calls.append(request)
        if self.fail_advice:
            raise AdviceGenerationError("model unavailable")
        return parse_advice_response(ADVICE_TEXT, request.profile.crops, generated_at="2024-06-15T10:00:00+00:00")

    async def process_feedback(self, profile, feedback):
        self.feedback_calls.append((profile, feedback))
        if self.fail_feedback:
            raise AdviceGenerationError("model unavailable")
        return self.acknowledgment


class FakeArchive:
    def __init__(self):
        self.profiles = []
        self.feedback = []

    async def store_profile(self, profile):
        self.profiles.append(profile)

    async def store_feedback(self, profile, feedback, acknowledgment):
        self.feedback.append((profile.phone, feedback, acknowledgment))


def make_profile(phone="2348000000001", crops=("maize",), location="Lagos"):
    return FarmerProfile(name="Jane Doe", crops=crops, location=location, language="English", phone=phone)


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def weather():
    return FakeWeather()


@pytest.fixture
def market():
    return FakeMarket()


@pytest.fixture
def ai():
    return FakeAI()


@pytest.fixture
def archive():
    return FakeArchive()


@pytest.fixture
def conversation(store, sender, weather, market, ai, archive):
    return Conversation(store, sender, weather, market, ai, archive=archive, progress_delays=(0, 0, 0))


@pytest.fixture
def registered(store):
    async def _register(phone="2348000000001", **kwargs):
        profile = make_profile(phone=phone, **kwargs)
        await store.merge(phone, {"farmer_profile": profile, "conversation_state": ConversationState.IDLE})
        return profile
    return _register
