import re
from dataclasses import dataclass
from enum import Enum

from inventory_agent.logging_config import get_logger
from inventory_agent.services.state_machine import Step

logger = get_logger("intent_service")


class Intent(str, Enum):
    SHOW_MENU = "show_menu"  # Main menu buttons
    MORE_OPTIONS = "more_options"  # Secondary menu (list)
    CANCEL_FLOW = "cancel_flow"
    ONBOARDING_START = "onboarding_start"
    CREATE_PRODUCT = "create_product"
    LIST_PRODUCTS = "list_products"
    UPDATE_PRODUCT = "update_product"
    DELETE_PRODUCT = "delete_product"
    ADD_IMAGES = "add_images"
    ADD_VIDEO = "add_video"
    REMOVE_IMAGES = "remove_images"
    REMOVE_VIDEO = "remove_video"
    PRODUCT_SELECTED = "product_selected"  # SELECT_PRODUCT_<id>
    UPDATE_PRODUCT_SELECTED = "update_product_selected"  # UPDATE_PRODUCT_<id>
    DELETE_PRODUCT_SELECTED = "delete_product_selected"  # DELETE_PRODUCT_<id>
    UPDATE_FIELD_SELECT = "update_field_select"
    DELETE_CONFIRM = "delete_confirm"
    IMAGE_REMOVAL_SELECTED = "image_removal_selected"  # REMOVE_IMAGE_<position>|ALL


@dataclass(frozen=True)
class ButtonCommand:
    intent: Intent
    product_id: str | None = None
    field: str | None = None
    confirmed: bool | None = None
    image: str | None = None


STATIC_BUTTONS = {
    "MAIN_MENU": ButtonCommand(Intent.SHOW_MENU),
    "MORE_OPTIONS": ButtonCommand(Intent.MORE_OPTIONS),
    "CANCEL": ButtonCommand(Intent.CANCEL_FLOW),
    "START_ONBOARDING": ButtonCommand(Intent.ONBOARDING_START),
    "ADD_PRODUCT": ButtonCommand(Intent.CREATE_PRODUCT),
    "LIST_PRODUCTS": ButtonCommand(Intent.LIST_PRODUCTS),
    "UPDATE_PRODUCT": ButtonCommand(Intent.UPDATE_PRODUCT),
    "DELETE_PRODUCT": ButtonCommand(Intent.DELETE_PRODUCT),
    "ADD_IMAGES": ButtonCommand(Intent.ADD_IMAGES),
    "ADD_VIDEO": ButtonCommand(Intent.ADD_VIDEO),
    "REMOVE_IMAGES": ButtonCommand(Intent.REMOVE_IMAGES),
    "REMOVE_VIDEO": ButtonCommand(Intent.REMOVE_VIDEO),
    "UPDATE_PRICE": ButtonCommand(Intent.UPDATE_FIELD_SELECT, field="price"),
    "UPDATE_STOCK": ButtonCommand(Intent.UPDATE_FIELD_SELECT, field="stock"),
    "UPDATE_NAME": ButtonCommand(Intent.UPDATE_FIELD_SELECT, field="name"),
    "CONFIRM_DELETE_YES": ButtonCommand(Intent.DELETE_CONFIRM, confirmed=True),
    "CONFIRM_DELETE_NO": ButtonCommand(Intent.DELETE_CONFIRM, confirmed=False),
}

PREFIX_BUTTONS = (
    ("SELECT_PRODUCT_", Intent.PRODUCT_SELECTED, "product_id"),
    ("DELETE_PRODUCT_", Intent.DELETE_PRODUCT_SELECTED, "product_id"),
    ("UPDATE_PRODUCT_", Intent.UPDATE_PRODUCT_SELECTED, "product_id"),
    ("REMOVE_IMAGE_", Intent.IMAGE_REMOVAL_SELECTED, "image"),
)

# Accepted in any step once onboarding is complete; they abandon the current flow.
GLOBAL_INTENTS = frozenset(
    {
        Intent.SHOW_MENU,
        Intent.MORE_OPTIONS,
        Intent.CANCEL_FLOW,
        Intent.CREATE_PRODUCT,
        Intent.LIST_PRODUCTS,
        Intent.UPDATE_PRODUCT,
        Intent.DELETE_PRODUCT,
        Intent.ADD_IMAGES,
        Intent.ADD_VIDEO,
        Intent.REMOVE_IMAGES,
        Intent.REMOVE_VIDEO,
    }
)

# Scoped intents: the only step each one is meaningful in.
SCOPED_INTENT_STEPS = {
    Intent.PRODUCT_SELECTED: Step.AWAITING_PRODUCT_SELECTION,
    Intent.UPDATE_PRODUCT_SELECTED: Step.AWAITING_PRODUCT_SELECTION,
    Intent.DELETE_PRODUCT_SELECTED: Step.AWAITING_PRODUCT_SELECTION,
    Intent.UPDATE_FIELD_SELECT: Step.AWAITING_UPDATE_FIELD,
    Intent.DELETE_CONFIRM: Step.CONFIRM_DELETE,
    Intent.IMAGE_REMOVAL_SELECTED: Step.AWAITING_IMAGE_REMOVAL,
}

UPDATABLE_FIELDS = ("price", "stock", "name")


def parse_button_id(button_id: str | None) -> ButtonCommand | None:
    """Map an interactive reply id onto a typed command. Unknown ids give None."""
    if not button_id:
        return None
    button_id = button_id.strip()

    command = STATIC_BUTTONS.get(button_id)
    if command:
        return command

    for prefix, intent, attribute in PREFIX_BUTTONS:
        if button_id.startswith(prefix):
            value = button_id[len(prefix):].strip()
            if not value:
                return None
            return ButtonCommand(intent, **{attribute: value})

    logger.info("Unknown button id", extra={"context": {"button_id": button_id}})
    return None


def is_allowed_in_step(command: ButtonCommand, step: Step) -> bool:
    if command.intent in GLOBAL_INTENTS:
        return True
    expected = SCOPED_INTENT_STEPS.get(command.intent)
    return expected is not None and expected == step


# === Keyword helpers (free text) ===

GREETING_PATTERN = re.compile(r"^(hi|hello|hey|assalam|salam|aoa|menu|start)\b", re.IGNORECASE)

CANCEL_EXACT = {
    "cancel",
    "stop",
    "abort",
    "exit",
    "quit",
    "nahi",
    "band karo",
    "cancel karo",
}

PRODUCT_KEYWORDS = (
    "add",
    "sell",
    "price",
    "rs",
    "pkr",
    "rupees",
    "racket",
    "racquet",
    "shoe",
    "shoes",
    "shuttle",
    "shuttlecock",
    "bag",
    "grip",
    "string",
    "shirt",
    "jersey",
    "yonex",
    "li-ning",
    "lining",
    "victor",
    "brand new",
    "used",
)


def normalize_for_matching(text: str) -> str:
    """Normalize text for matching short phrases (casefold + trim punctuation)."""
    if not text:
        return ""

    normalized = text.strip().casefold()
    normalized = re.sub(r"\s+", " ", normalized)
    normalized = re.sub(r"^[^\w]+|[^\w]+$", "", normalized)
    return normalized


def is_greeting(text: str) -> bool:
    normalized = normalize_for_matching(text)
    return bool(normalized) and bool(GREETING_PATTERN.match(normalized))


def is_cancel(text: str) -> bool:
    return normalize_for_matching(text) in CANCEL_EXACT


def looks_like_product_description(text: str) -> bool:
    """Best-effort check whether free text describes a product to create."""
    normalized = normalize_for_matching(text)
    if not normalized:
        return False
    tokens = set(re.findall(r"[\w-]+", normalized))
    for keyword in PRODUCT_KEYWORDS:
        if " " in keyword:
            if keyword in normalized:
                return True
        elif keyword in tokens:
            return True
    return bool(re.search(r"\b\d{3,}\b|\b\d+(?:\.\d+)?\s?k\b", normalized))
