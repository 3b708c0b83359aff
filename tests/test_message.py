from flux.message import ChatMetadata, Inbound, Message, Status, direct_chat, is_group_chat


def test_group_suffix_is_detected():
    assert is_group_chat("120363043968066561@g.us")
    assert is_group_chat(ChatMetadata("120363043968066561@g.us"))


def test_direct_chats_are_not_groups():
    assert not is_group_chat("2348000000001@c.us")
    assert not is_group_chat(direct_chat("2348000000001"))
    assert not is_group_chat("")
    assert not is_group_chat(None)


def test_text_message_is_parsed():
    message = Message(
        {"id": "wamid.1", "from": "2348000000001", "type": "text", "text": {"body": "Hello"}},
        "1234567890",
    )

    assert message.is_text
    assert message.text == "Hello"
    assert message.from_ == "2348000000001"
    assert message.chat.chat_id == "2348000000001@c.us"
    assert message.chat.phone_number_id == "1234567890"
    assert not is_group_chat(message.chat)


def test_group_message_gets_group_chat_id():
    message = Message({
        "id": "wamid.2",
        "from": "2348000000001",
        "type": "text",
        "group_id": "120363043968066561",
        "text": {"body": "advice"},
    })

    assert message.chat.chat_id == "120363043968066561@g.us"
    assert is_group_chat(message.chat)


def test_non_text_message_has_no_text():
    message = Message({"id": "wamid.3", "from": "2348000000001", "type": "image", "image": {"id": "m1"}})

    assert not message.is_text
    assert message.text is None


def test_inbound_value_keeps_casing():
    inbound = Inbound("u1", "  Jane Doe \n", "jane doe", direct_chat("u1"))

    assert inbound.value == "Jane Doe"
    assert inbound.text == "jane doe"


def test_status_fields():
    status = Status({"id": "wamid.9", "status": "read", "recipient_id": "2348000000001"})

    assert status.message_id == "wamid.9"
    assert status.status == "read"
    assert status.recipient_phone_number == "2348000000001"
