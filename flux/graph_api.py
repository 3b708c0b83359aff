import logging

import requests

from flux.config import Config
from flux.utility import run_blocking

logger = logging.getLogger("flux.graph_api")


class GraphApi:
    @staticmethod
    def _post(sender_phone_number_id, body):
        url = f"{Config.graph_api_url}/{sender_phone_number_id}/messages"
        headers = {"Authorization": f"Bearer {Config.access_token}"}
        response = requests.post(url, json=body, headers=headers, timeout=30)

        if not response.ok:
            logger.error(
                "[GraphApi] HTTP_ERROR status=%s url=%s body=%s",
                response.status_code,
                url,
                response.text,
            )

        response.raise_for_status()
        return response.json()

    @staticmethod
    def mark_read(sender_phone_number_id, message_id):
        """Marks the inbound message read and shows the typing indicator."""
        body = {
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": message_id,
            "typing_indicator": {"type": "text"}
        }
        return GraphApi._post(sender_phone_number_id, body)

    @staticmethod
    def message_text(sender_phone_number_id, recipient_phone_number, text):
        body = {
            "messaging_product": "whatsapp",
            "to": recipient_phone_number,
            "type": "text",
            "text": {"body": text}
        }
        return GraphApi._post(sender_phone_number_id, body)


class GraphApiSender:
    """Outbound text sender used by the dialogue engine."""

    def __init__(self, default_phone_number_id=None, timeout=None):
        self._default_phone_number_id = default_phone_number_id or Config.phone_number_id
        self._timeout = timeout

    async def send_text(self, recipient, text, chat=None):
        phone_number_id = (chat.phone_number_id if chat is not None else None) or self._default_phone_number_id
        if not phone_number_id:
            raise ValueError("No business phone number id to send from")
        await run_blocking(GraphApi.message_text, phone_number_id, recipient, text, timeout=self._timeout)
