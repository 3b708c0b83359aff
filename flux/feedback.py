import logging
import re

import anyio

from flux.message import is_group_chat
from flux.models import ConversationState
from flux.replies import MSG_FEEDBACK_FAILED, MSG_FEEDBACK_REQUEST, MSG_REGISTER_FIRST_FEEDBACK
from flux.utility import run_in_background

logger = logging.getLogger("flux.feedback")

_FEEDBACK_KEYWORD_RE = re.compile(r"feedback", re.IGNORECASE)
_LEADING_NOISE = " \t\r\n:;,.-–"

# Checked in order; the first key contained in the feedback wins
COMMON_FEEDBACK = (
    ("planted", "I have planted my crops"),
    ("harvested", "I have harvested my crops"),
    ("pest problem", "I have pest problems"),
    ("weather issue", "I have weather-related issues"),
    ("market update", "I have market information to share"),
    ("good yield", "I had a good yield this season"),
    ("poor yield", "I had a poor yield this season"),
    ("irrigation", "I need irrigation advice"),
    ("fertilizer", "I need fertilizer advice"),
)


def extract_feedback(raw_text):
    """Text following the first "feedback" keyword, original casing kept."""
    match = _FEEDBACK_KEYWORD_RE.search(raw_text or "")
    if not match:
        return ""
    return raw_text[match.end():].lstrip(_LEADING_NOISE).strip()


def normalize_feedback(feedback):
    lowered = feedback.casefold()
    for key, sentence in COMMON_FEEDBACK:
        if key in lowered:
            return sentence
    return feedback


class FeedbackFlow:
    def __init__(self, store, sender, ai, archive=None, timeout=None):
        self._store = store
        self._sender = sender
        self._ai = ai
        self._archive = archive
        self._timeout = timeout

    async def handle(self, inbound, session):
        if is_group_chat(inbound.chat):
            return

        profile = session.farmer_profile
        if profile is None:
            await self._reply(inbound, MSG_REGISTER_FIRST_FEEDBACK)
            return

        content = extract_feedback(inbound.raw_text)
        if not content:
            await self._reply(inbound, MSG_FEEDBACK_REQUEST)
            return

        feedback = normalize_feedback(content)
        logger.info("[FEEDBACK] user=%s | feedback=%r", inbound.sender, feedback)

        try:
            with anyio.fail_after(self._timeout):
                acknowledgment = await self._ai.process_feedback(profile, feedback)
        except Exception:
            logger.error("[FEEDBACK] processing failed | user=%s", inbound.sender, exc_info=True)
            await self._reply(inbound, MSG_FEEDBACK_FAILED)
        else:
            if self._archive is not None:
                run_in_background(self._archive.store_feedback, profile, feedback, acknowledgment)
            await self._reply(inbound, acknowledgment)
        finally:
            await self._store.merge(inbound.sender, {"conversation_state": ConversationState.IDLE})

    async def _reply(self, inbound, text):
        await self._sender.send_text(inbound.sender, text, inbound.chat)
