import logging

from flux.advice import AdviceFlow
from flux.feedback import FeedbackFlow
from flux.message import Inbound, direct_chat, is_group_chat
from flux.registration import RegistrationFlow
from flux.replies import (
    MSG_HELP,
    MSG_INVALID_COMMAND,
    MSG_NOT_REGISTERED,
    MSG_SOMETHING_WENT_WRONG,
    format_status,
    format_welcome,
)
from flux.router import Intent, route

logger = logging.getLogger("flux.conversation")


class Conversation:
    """Dialogue engine: one call per inbound text message.

    Messages from the same sender are handled one at a time under the
    session store's per-sender lock; different senders run in parallel.
    Errors never leave ``handle_incoming_message``.
    """

    def __init__(
        self,
        store,
        sender,
        weather,
        market,
        ai,
        archive=None,
        progress_delays=None,
        timeout=None,
    ):
        self._store = store
        self._sender = sender
        self.registration = RegistrationFlow(store, sender, archive=archive)
        advice_kwargs = {} if progress_delays is None else {"progress_delays": progress_delays}
        self.advice = AdviceFlow(store, sender, weather, market, ai, timeout=timeout, **advice_kwargs)
        self.feedback = FeedbackFlow(store, sender, ai, archive=archive, timeout=timeout)

        self._handlers = {
            Intent.REGISTRATION_STEP: self.registration.handle_step,
            Intent.START: self._handle_start,
            Intent.GREETING: self._handle_start,
            Intent.REGISTER: self._handle_register,
            Intent.ADVICE: self.advice.handle,
            Intent.FEEDBACK: self.feedback.handle,
            Intent.HELP: self._handle_help,
            Intent.STATUS: self._handle_status,
            Intent.INVALID: self._handle_invalid,
        }

    async def handle_incoming_message(self, sender_key, raw_text, chat=None):
        chat = chat or direct_chat(sender_key)
        if is_group_chat(chat):
            logger.info("Ignoring group chat message from %s in %s", sender_key, chat.chat_id)
            return

        try:
            async with self._store.lock(sender_key):
                session = await self._store.get(sender_key)
                intent, text = route(raw_text, session, chat)
                handler = self._handlers.get(intent)
                if handler is None:
                    return
                await handler(Inbound(sender_key, raw_text, text, chat), session)
        except Exception:
            logger.error("Failed to handle message from %s", sender_key, exc_info=True)
            await self._send_apology(sender_key, chat)

    async def _handle_start(self, inbound, session):
        await self._reply(inbound, format_welcome(inbound.sender))

    async def _handle_register(self, inbound, session):
        await self.registration.start(inbound)

    async def _handle_help(self, inbound, session):
        await self._reply(inbound, MSG_HELP)

    async def _handle_status(self, inbound, session):
        if session.farmer_profile is None:
            await self._reply(inbound, MSG_NOT_REGISTERED)
            return
        await self._reply(inbound, format_status(session.farmer_profile))

    async def _handle_invalid(self, inbound, session):
        await self._reply(inbound, MSG_INVALID_COMMAND)

    async def _reply(self, inbound, text):
        await self._sender.send_text(inbound.sender, text, inbound.chat)

    async def _send_apology(self, sender_key, chat):
        try:
            await self._sender.send_text(sender_key, MSG_SOMETHING_WENT_WRONG, chat)
        except Exception:
            logger.error("Could not notify %s about the failure", sender_key, exc_info=True)
