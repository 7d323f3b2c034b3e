from typing import Optional

import httpx

from inventory_agent.config import settings
from inventory_agent.logging_config import get_logger

logger = get_logger("dispatcher")

MAX_BUTTONS = 3
BUTTON_TITLE_LIMIT = 20
LIST_BUTTON_TEXT_LIMIT = 20
MAX_LIST_ROWS = 10
ROW_TITLE_LIMIT = 24
ROW_DESCRIPTION_LIMIT = 72
SECTION_TITLE_LIMIT = 24
HEADER_LIMIT = 60
FOOTER_LIMIT = 60
BODY_LIMIT = 4096


def truncate(text: Optional[str], limit: int) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


class WhatsAppDispatcher:
    """Sends text, reply buttons and lists through the WhatsApp Cloud API.

    Every send returns True/False. Delivery problems are logged, never raised.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        phone_number_id: Optional[str] = None,
        graph_api_base: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token if access_token is not None else settings.whatsapp_access_token
        self.phone_number_id = phone_number_id if phone_number_id is not None else settings.whatsapp_phone_number_id
        self.graph_api_base = (graph_api_base or settings.graph_api_base).rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.http_timeout_seconds
        self._transport = transport

    async def _post(self, to: str, payload: dict) -> bool:
        if not self.access_token or not self.phone_number_id:
            logger.error(
                "WhatsApp credentials missing, message not sent",
                extra={"context": {"to": to, "type": payload.get("type")}},
            )
            return False

        body = {"messaging_product": "whatsapp", "recipient_type": "individual", "to": to, **payload}
        url = f"{self.graph_api_base}/{self.phone_number_id}/messages"
        headers = {"Authorization": f"Bearer {self.access_token}"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(url, json=body, headers=headers)
            if response.status_code >= 400:
                logger.error(
                    "WhatsApp send rejected",
                    extra={
                        "context": {
                            "to": to,
                            "type": payload.get("type"),
                            "status": response.status_code,
                            "body": response.text[:300],
                        }
                    },
                )
                return False
            return True
        except Exception as e:
            logger.error(
                "WhatsApp send failed",
                extra={"context": {"to": to, "type": payload.get("type"), "error": str(e)}},
            )
            return False

    async def send_text(self, to: str, body: str) -> bool:
        if not body:
            return False
        return await self._post(
            to, {"type": "text", "text": {"preview_url": False, "body": truncate(body, BODY_LIMIT)}}
        )

    async def send_buttons(
        self,
        to: str,
        body: str,
        buttons: list[dict],
        header: Optional[str] = None,
        footer: Optional[str] = None,
    ) -> bool:
        """buttons: [{"id": ..., "title": ...}], at most three are sent."""
        if len(buttons) > MAX_BUTTONS:
            logger.warning(
                "Too many buttons, extra ones dropped",
                extra={"context": {"to": to, "count": len(buttons)}},
            )
        interactive = {
            "type": "button",
            "body": {"text": truncate(body, 1024)},
            "action": {
                "buttons": [
                    {
                        "type": "reply",
                        "reply": {"id": button["id"], "title": truncate(button["title"], BUTTON_TITLE_LIMIT)},
                    }
                    for button in buttons[:MAX_BUTTONS]
                ]
            },
        }
        if header:
            interactive["header"] = {"type": "text", "text": truncate(header, HEADER_LIMIT)}
        if footer:
            interactive["footer"] = {"text": truncate(footer, FOOTER_LIMIT)}
        return await self._post(to, {"type": "interactive", "interactive": interactive})

    async def send_list(
        self,
        to: str,
        body: str,
        button_text: str,
        sections: list[dict],
        header: Optional[str] = None,
        footer: Optional[str] = None,
    ) -> bool:
        """sections: [{"title": ..., "rows": [{"id", "title", "description"?}]}]."""
        rendered_sections = []
        for section in sections:
            rows = []
            for row in section.get("rows", [])[:MAX_LIST_ROWS]:
                rendered = {"id": row["id"], "title": truncate(row["title"], ROW_TITLE_LIMIT)}
                if row.get("description"):
                    rendered["description"] = truncate(row["description"], ROW_DESCRIPTION_LIMIT)
                rows.append(rendered)
            rendered_sections.append({"title": truncate(section.get("title"), SECTION_TITLE_LIMIT), "rows": rows})

        interactive = {
            "type": "list",
            "body": {"text": truncate(body, 1024)},
            "action": {"button": truncate(button_text, LIST_BUTTON_TEXT_LIMIT), "sections": rendered_sections},
        }
        if header:
            interactive["header"] = {"type": "text", "text": truncate(header, HEADER_LIMIT)}
        if footer:
            interactive["footer"] = {"text": truncate(footer, FOOTER_LIMIT)}
        return await self._post(to, {"type": "interactive", "interactive": interactive})
