GROUP_CHAT_SUFFIX = "@g.us"
DIRECT_CHAT_SUFFIX = "@c.us"


class ChatMetadata:
    """Transport-supplied facts about where a message came from.

    chat_id: "<id>@g.us" for group chats, "<id>@c.us" for one-to-one chats.
    phone_number_id: the business number the message was sent to; replies
    go out from the same number.
    """

    def __init__(self, chat_id, phone_number_id=None):
        self.chat_id = chat_id or ""
        self.phone_number_id = phone_number_id

    def __repr__(self):
        return f"ChatMetadata(chat_id={self.chat_id!r}, phone_number_id={self.phone_number_id!r})"


def is_group_chat(chat):
    """True when the message came from a group or broadcast chat.

    Accepts a ChatMetadata or a bare chat id string.
    """
    chat_id = chat.chat_id if isinstance(chat, ChatMetadata) else chat
    return bool(chat_id) and chat_id.endswith(GROUP_CHAT_SUFFIX)


def direct_chat(sender, phone_number_id=None):
    return ChatMetadata(f"{sender}{DIRECT_CHAT_SUFFIX}", phone_number_id)


class Inbound:
    """One inbound text as the flows see it."""

    def __init__(self, sender, raw_text, text, chat):
        self.sender = sender
        self.raw_text = raw_text or ""
        self.text = text
        self.chat = chat

    @property
    def value(self):
        """The user's text, trimmed but with its original casing."""
        return self.raw_text.strip()


class Message:
    def __init__(self, raw_message, phone_number_id=None):
        self.id = raw_message.get("id")
        self.from_ = raw_message.get("from")
        self.type = raw_message.get("type")
        self.group_id = raw_message.get("group_id")

        self.text = None
        if self.type == "text":
            self.text = (raw_message.get("text") or {}).get("body")

        if self.group_id:
            self.chat = ChatMetadata(f"{self.group_id}{GROUP_CHAT_SUFFIX}", phone_number_id)
        else:
            self.chat = direct_chat(self.from_, phone_number_id)

    @property
    def is_text(self):
        return self.type == "text" and self.text is not None


class Status:
    def __init__(self, raw_status):
        self.message_id = raw_status.get("id")
        self.status = raw_status.get("status")
        self.recipient_phone_number = raw_status.get("recipient_id")
