"""Typed records shared by the session store, the flows and the collaborators.

SessionState is the per-sender bag persisted by the session store. It is
validated on every build and merge, so a flow can never leave a session with
an unknown conversation state or a half-built profile.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ConversationState(str, Enum):
    IDLE = "idle"
    COLLECTING_NAME = "collecting_name"
    COLLECTING_FIRST_CROP = "collecting_first_crop"
    COLLECTING_MORE_CROPS = "collecting_more_crops"
    COLLECTING_LOCATION = "collecting_location"
    COLLECTING_LANGUAGE = "collecting_language"


REGISTRATION_STATES = frozenset({
    ConversationState.COLLECTING_NAME,
    ConversationState.COLLECTING_FIRST_CROP,
    ConversationState.COLLECTING_MORE_CROPS,
    ConversationState.COLLECTING_LOCATION,
    ConversationState.COLLECTING_LANGUAGE,
})

# States reached only after the first crop has been collected
_STATES_WITH_CROPS = frozenset({
    ConversationState.COLLECTING_MORE_CROPS,
    ConversationState.COLLECTING_LOCATION,
    ConversationState.COLLECTING_LANGUAGE,
})


def is_registration_state(state: ConversationState) -> bool:
    return state in REGISTRATION_STATES


class FarmerProfile(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    crops: Tuple[str, ...] = Field(min_length=1)
    location: str
    language: str
    phone: str

    @field_validator("name", "location", "language", "phone")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("crops")
    @classmethod
    def _non_empty_crops(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        crops = tuple(crop.strip() for crop in value)
        if any(not crop for crop in crops):
            raise ValueError("crop names must not be empty")
        return crops

    @property
    def primary_crop(self) -> str:
        return self.crops[0]


class SessionState(BaseModel):
    model_config = ConfigDict(extra="forbid")

    conversation_state: ConversationState = ConversationState.IDLE
    collected_crops: List[str] = Field(default_factory=list)
    name: Optional[str] = None
    location: Optional[str] = None
    language: Optional[str] = None
    farmer_profile: Optional[FarmerProfile] = None

    @model_validator(mode="after")
    def _crops_collected_past_first_step(self) -> "SessionState":
        if self.conversation_state in _STATES_WITH_CROPS and not self.collected_crops:
            raise ValueError(
                f"collected_crops must not be empty in state {self.conversation_state.value}"
            )
        return self


class WeatherData(BaseModel):
    temperature: float
    humidity: float
    rainfall: float
    condition: str
    date: str


class MarketData(BaseModel):
    crop_type: str
    price: float
    currency: str
    unit: str
    location: str
    trend: str
    date: str


class AdviceRequest(BaseModel):
    profile: FarmerProfile
    weather: WeatherData
    market: MarketData
    season: str


class AdviceResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    planting: str
    irrigation: str
    harvest: str
    market: str
    general: str
    confidence: int = Field(ge=0, le=100)
    generated_at: str
