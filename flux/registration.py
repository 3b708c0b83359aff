import logging

from pydantic import ValidationError

from flux.message import is_group_chat
from flux.models import ConversationState, FarmerProfile
from flux.replies import (
    MSG_ADD_MORE_CROPS,
    MSG_ASK_FIRST_CROP,
    MSG_ASK_FIRST_CROP_AGAIN,
    MSG_ASK_LANGUAGE,
    MSG_ASK_LANGUAGE_AGAIN,
    MSG_ASK_LOCATION_AGAIN,
    MSG_ASK_NAME,
    MSG_ASK_NAME_AGAIN,
    MSG_CROP_ADDED,
    MSG_CROPS_COMPLETE,
    MSG_MORE_CROPS_QUESTION,
    MSG_REGISTRATION_COMPLETE,
    format_crops,
)
from flux.utility import run_in_background

logger = logging.getLogger("flux.registration")

ANSWER_YES = "yes"
ANSWERS_FINISHED = ("no", "done")
CONTROL_WORDS = (ANSWER_YES,) + ANSWERS_FINISHED

# Clears everything a half-finished registration may have left behind
_RESET_PARTIAL = {
    "collected_crops": [],
    "name": None,
    "location": None,
    "language": None,
}


class RegistrationFlow:
    """Collects name, crops, location and language one message at a time."""

    def __init__(self, store, sender, archive=None):
        self._store = store
        self._sender = sender
        self._archive = archive
        self._steps = {
            ConversationState.COLLECTING_NAME: self._on_name,
            ConversationState.COLLECTING_FIRST_CROP: self._on_first_crop,
            ConversationState.COLLECTING_MORE_CROPS: self._on_more_crops,
            ConversationState.COLLECTING_LOCATION: self._on_location,
            ConversationState.COLLECTING_LANGUAGE: self._on_language,
        }

    async def start(self, inbound):
        if is_group_chat(inbound.chat):
            return

        logger.info("[REGISTRATION] start | user=%s", inbound.sender)
        await self._store.merge(inbound.sender, {
            **_RESET_PARTIAL,
            "conversation_state": ConversationState.COLLECTING_NAME,
        })
        await self._reply(inbound, MSG_ASK_NAME)

    async def handle_step(self, inbound, session):
        if is_group_chat(inbound.chat):
            return

        step = self._steps.get(session.conversation_state)
        if step is None:
            logger.warning(
                "[REGISTRATION] no step for state %s | user=%s",
                session.conversation_state.value,
                inbound.sender,
            )
            return
        await step(inbound, session)

    async def _on_name(self, inbound, session):
        name = inbound.value
        if not name:
            await self._reply(inbound, MSG_ASK_NAME_AGAIN)
            return

        await self._store.merge(inbound.sender, {
            "name": name,
            "conversation_state": ConversationState.COLLECTING_FIRST_CROP,
        })
        await self._reply(inbound, MSG_ASK_FIRST_CROP.format(name=name))

    async def _on_first_crop(self, inbound, session):
        crop = inbound.value
        if not crop or crop.casefold() in CONTROL_WORDS:
            await self._reply(inbound, MSG_ASK_FIRST_CROP_AGAIN)
            return

        await self._store.merge(inbound.sender, {
            "collected_crops": [crop],
            "conversation_state": ConversationState.COLLECTING_MORE_CROPS,
        })
        await self._reply(inbound, MSG_MORE_CROPS_QUESTION.format(crops=crop))

    async def _on_more_crops(self, inbound, session):
        answer = inbound.value
        word = answer.casefold()
        crops = list(session.collected_crops)

        if not answer:
            await self._reply(inbound, MSG_MORE_CROPS_QUESTION.format(crops=format_crops(crops)))
            return

        if word == ANSWER_YES:
            await self._reply(inbound, MSG_ADD_MORE_CROPS)
            return

        if word in ANSWERS_FINISHED:
            if not crops:
                # A profile is never built without at least one crop
                await self._store.merge(inbound.sender, {
                    "collected_crops": [],
                    "conversation_state": ConversationState.COLLECTING_FIRST_CROP,
                })
                await self._reply(inbound, MSG_ASK_FIRST_CROP_AGAIN)
                return

            await self._store.merge(inbound.sender, {
                "conversation_state": ConversationState.COLLECTING_LOCATION,
            })
            await self._reply(inbound, MSG_CROPS_COMPLETE.format(crops=format_crops(crops)))
            return

        crops.append(answer)
        await self._store.merge(inbound.sender, {"collected_crops": crops})
        await self._reply(inbound, MSG_CROP_ADDED.format(crop=answer, crops=format_crops(crops)))

    async def _on_location(self, inbound, session):
        location = inbound.value
        if not location:
            await self._reply(inbound, MSG_ASK_LOCATION_AGAIN)
            return

        await self._store.merge(inbound.sender, {
            "location": location,
            "conversation_state": ConversationState.COLLECTING_LANGUAGE,
        })
        await self._reply(inbound, MSG_ASK_LANGUAGE)

    async def _on_language(self, inbound, session):
        language = inbound.value
        if not language:
            await self._reply(inbound, MSG_ASK_LANGUAGE_AGAIN)
            return

        try:
            profile = FarmerProfile(
                name=session.name or "",
                crops=tuple(session.collected_crops),
                location=session.location or "",
                language=language,
                phone=inbound.sender,
            )
        except ValidationError:
            logger.error(
                "[REGISTRATION] incomplete session at language step, restarting | user=%s",
                inbound.sender,
                exc_info=True,
            )
            await self.start(inbound)
            return

        await self._store.merge(inbound.sender, {
            **_RESET_PARTIAL,
            "farmer_profile": profile,
            "conversation_state": ConversationState.IDLE,
        })
        logger.info("[REGISTRATION] complete | user=%s | crops=%s", inbound.sender, list(profile.crops))

        if self._archive is not None:
            run_in_background(self._archive.store_profile, profile)

        await self._reply(inbound, MSG_REGISTRATION_COMPLETE.format(
            name=profile.name,
            crops=format_crops(profile.crops),
            location=profile.location,
            language=profile.language,
        ))

    async def _reply(self, inbound, text):
        await self._sender.send_text(inbound.sender, text, inbound.chat)
