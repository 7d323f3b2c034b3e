from inventory_agent.services.normalizer import normalize_webhook


def _payload(message=None, statuses=None):
    value = {"messaging_product": "whatsapp"}
    if message is not None:
        value["messages"] = [message]
    if statuses is not None:
        value["statuses"] = statuses
    return {"object": "whatsapp_business_account", "entry": [{"changes": [{"value": value}]}]}


class TestNormalizeWebhook:
    def test_text_message(self):
        event = normalize_webhook(
            _payload({"from": "923001234567", "id": "wamid.1", "type": "text", "text": {"body": "hi"}})
        )
        assert event.phone == "923001234567"
        assert event.kind == "text"
        assert event.body == "hi"
        assert event.message_id == "wamid.1"

    def test_image_with_caption(self):
        event = normalize_webhook(
            _payload(
                {
                    "from": "923001234567",
                    "type": "image",
                    "image": {"id": "media-9", "mime_type": "image/jpeg", "caption": "Yonex racket 5000"},
                }
            )
        )
        assert event.kind == "image"
        assert event.media_id == "media-9"
        assert event.mime_type == "image/jpeg"
        assert event.caption == "Yonex racket 5000"
        assert event.body == "Yonex racket 5000"
        assert event.has_caption

    def test_bare_video(self):
        event = normalize_webhook(
            _payload({"from": "923001234567", "type": "video", "video": {"id": "vid-1", "mime_type": "video/mp4"}})
        )
        assert event.kind == "video"
        assert event.caption is None
        assert not event.has_caption

    def test_button_reply(self):
        event = normalize_webhook(
            _payload(
                {
                    "from": "923001234567",
                    "type": "interactive",
                    "interactive": {"type": "button_reply", "button_reply": {"id": "ADD_PRODUCT", "title": "Add"}},
                }
            )
        )
        assert event.kind == "interactive"
        assert event.button_id == "ADD_PRODUCT"

    def test_list_reply(self):
        event = normalize_webhook(
            _payload(
                {
                    "from": "923001234567",
                    "type": "interactive",
                    "interactive": {"type": "list_reply", "list_reply": {"id": "DELETE_PRODUCT_abc", "title": "x"}},
                }
            )
        )
        assert event.button_id == "DELETE_PRODUCT_abc"

    def test_status_callback_is_dropped(self):
        assert normalize_webhook(_payload(statuses=[{"id": "wamid.1", "status": "delivered"}])) is None

    def test_unsupported_type_is_dropped(self):
        assert normalize_webhook(_payload({"from": "923001234567", "type": "sticker", "sticker": {"id": "s"}})) is None

    def test_malformed_shapes_return_none(self):
        assert normalize_webhook(None) is None
        assert normalize_webhook([]) is None
        assert normalize_webhook({"entry": []}) is None
        assert normalize_webhook({"entry": [{"changes": "nope"}]}) is None
        assert normalize_webhook({"entry": [{"changes": [{"value": None}]}]}) is None
        assert normalize_webhook(_payload({"type": "text", "text": {"body": "no sender"}})) is None
        assert normalize_webhook(_payload({"from": "1", "type": "image", "image": {}})) is None
        assert normalize_webhook(_payload({"from": "1", "type": "interactive", "interactive": {}})) is None
