import logging
import re
from enum import Enum
from typing import NamedTuple

from flux.message import is_group_chat
from flux.models import is_registration_state

logger = logging.getLogger("flux.router")


class Intent(str, Enum):
    IGNORE = "ignore"
    REGISTRATION_STEP = "registration_step"
    START = "start"
    GREETING = "greeting"
    REGISTER = "register"
    ADVICE = "advice"
    FEEDBACK = "feedback"
    HELP = "help"
    STATUS = "status"
    INVALID = "invalid"


class Route(NamedTuple):
    intent: Intent
    text: str


CMD_START = "start"
CMD_REGISTER = "register"
CMD_ADVICE = "advice"
CMD_FEEDBACK = "feedback"
CMD_HELP = "help"
CMD_STATUS = "status"

GREETINGS = (
    "hi", "hello", "hey", "hiya", "howdy", "greetings",
    "good morning", "good afternoon", "good evening",
    "what's up", "whats up", "sup", "yo",
)

# Short greetings are matched as whole words so "this" or "higher" stay plain text
_GREETING_RE = re.compile(
    r"(?<!\w)(?:" + "|".join(re.escape(g) for g in GREETINGS) + r")(?!\w)"
)


def _contains(word):
    return lambda text: word in text


# First match wins; the order is part of the routing contract
COMMAND_ORDER = (
    (Intent.START, _contains(CMD_START)),
    (Intent.GREETING, lambda text: _GREETING_RE.search(text) is not None),
    (Intent.REGISTER, _contains(CMD_REGISTER)),
    (Intent.ADVICE, _contains(CMD_ADVICE)),
    (Intent.FEEDBACK, _contains(CMD_FEEDBACK)),
    (Intent.HELP, _contains(CMD_HELP)),
    (Intent.STATUS, _contains(CMD_STATUS)),
)


def normalize(text):
    return (text or "").strip().casefold()


def match_command(text):
    if not text:
        return Intent.START
    for intent, matches in COMMAND_ORDER:
        if matches(text):
            return intent
    return Intent.INVALID


def route(raw_text, session, chat):
    text = normalize(raw_text)

    if is_group_chat(chat):
        return Route(Intent.IGNORE, text)

    if is_registration_state(session.conversation_state):
        return Route(Intent.REGISTRATION_STEP, text)

    intent = match_command(text)
    logger.info("[ROUTER] text=%r -> %s", text, intent.value)
    return Route(intent, text)
