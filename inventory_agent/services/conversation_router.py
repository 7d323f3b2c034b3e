"""Per-phone conversation state machine for sellers managing their catalog.

The router owns every decision: it reads the seller and the session, picks one
transition for the inbound event and sends the follow-up prompt. Onboarding
always comes first; after that, buttons drive the flows and free text is only
consumed by steps that ask for it.
"""

from typing import Optional

from inventory_agent.config import settings
from inventory_agent.logging_config import bind, get_logger
from inventory_agent.models import Product, Seller
from inventory_agent.models.product import MAX_IMAGES
from inventory_agent.schemas.webhook import InboundEvent
from inventory_agent.services import replies
from inventory_agent.services.aggregator import Aggregator, FlushedMessage, InputType, MediaRef
from inventory_agent.services.catalog_store import CatalogStore
from inventory_agent.services.dispatcher import WhatsAppDispatcher
from inventory_agent.services.intent_service import (
    GLOBAL_INTENTS,
    ButtonCommand,
    Intent,
    is_allowed_in_step,
    is_cancel,
    is_greeting,
    looks_like_product_description,
    parse_button_id,
)
from inventory_agent.services.media_gateway import MediaGatewayError, MediaTooLargeError
from inventory_agent.services.media_service import MediaService
from inventory_agent.services.product_parser import ProposedProduct, coerce_update_value, parse_product_details
from inventory_agent.services.result import LIMIT_REACHED, NOT_FOUND
from inventory_agent.services.session_store import ConversationState, SessionStore
from inventory_agent.services.state_machine import (
    ONBOARDING_STEPS,
    Step,
    accepts_text,
    onboarding_step_for,
    reset,
    transition,
)

logger = get_logger("conversation_router")

PRODUCT_LIST_LIMIT = 20
SELECTION_LIMIT = 10
MIN_LOOKUP_LENGTH = 3

SELECTION_OPERATIONS = {
    Intent.UPDATE_PRODUCT: "update",
    Intent.DELETE_PRODUCT: "delete",
    Intent.ADD_IMAGES: "images",
    Intent.ADD_VIDEO: "video",
    Intent.REMOVE_IMAGES: "remove_images",
    Intent.REMOVE_VIDEO: "remove_video",
}

# Which selection list each product-selection button belongs to.
SELECTED_INTENT_OPERATIONS = {
    Intent.UPDATE_PRODUCT_SELECTED: ("update",),
    Intent.DELETE_PRODUCT_SELECTED: ("delete",),
    Intent.PRODUCT_SELECTED: ("images", "video", "remove_images", "remove_video"),
}

STEP_REPROMPTS = {
    Step.AWAITING_IMAGE: replies.SEND_PHOTO_AGAIN,
    Step.AWAITING_PRODUCT_DETAILS: replies.DESCRIBE_PRODUCT_AGAIN,
    Step.AWAITING_PRODUCT_SELECTION: replies.SELECT_FROM_LIST,
    Step.AWAITING_UPDATE_FIELD: replies.SELECT_FIELD,
    Step.CONFIRM_DELETE: replies.CONFIRM_DELETE_AGAIN,
    Step.AWAITING_IMAGE_REMOVAL: replies.SELECT_IMAGE_TO_REMOVE,
}


class ConversationRouter:
    def __init__(
        self,
        store: CatalogStore,
        sessions: SessionStore,
        dispatcher: WhatsAppDispatcher,
        media: MediaService,
        scheduler=None,
        debounce_seconds: Optional[float] = None,
    ):
        self.store = store
        self.sessions = sessions
        self.dispatcher = dispatcher
        self.media = media
        self.aggregator = Aggregator(
            handler=self.handle_flush,
            on_error=self._on_flush_error,
            scheduler=scheduler,
            delay_seconds=settings.debounce_seconds if debounce_seconds is None else debounce_seconds,
        )

    # === Entry points ===

    async def process_event(self, event: InboundEvent) -> None:
        """Handle one inbound event. Never raises."""
        log = bind(logger, phone=event.phone, kind=event.kind)
        try:
            await self._route(event)
        except MediaTooLargeError as e:
            await self.dispatcher.send_text(event.phone, replies.media_too_large(e.size_mb))
        except MediaGatewayError as e:
            log.error("Media gateway failure", extra={"context": {"error": str(e)}})
            await self.dispatcher.send_text(event.phone, replies.UPLOAD_FAILED)
        except Exception as e:
            log.error("Event processing failed", extra={"context": {"error": str(e)}}, exc_info=True)
            await self._apologize(event.phone)

    async def handle_flush(self, message: FlushedMessage) -> None:
        """Aggregated description (plus photos) for a phone whose buffer went quiet."""
        phone = message.phone
        seller = self.store.find_seller_by_phone(phone)
        if seller is None or seller.needs_onboarding:
            await self.media.release_refs(message.images)
            return

        if message.input_type == InputType.TEXT_ONLY:
            await self.dispatcher.send_text(phone, replies.TEXT_ONLY_HINT)
            await self._send_menu(seller)
            return

        images = list(message.images)
        kept, extra = images[:MAX_IMAGES], images[MAX_IMAGES:]
        if extra:
            await self.media.release_refs(extra)

        proposed = parse_product_details(message.text)
        product = self._create_product(seller, proposed, [ref.to_dict() for ref in kept])
        await self.dispatcher.send_text(phone, replies.product_created(product, proposed.price_missing, len(extra)))
        await self._send_menu(seller)

    async def clear_context(self, phone: str) -> None:
        await self._release_draft(await self.sessions.get_state(phone))
        await self.sessions.clear_state(phone)
        await self.sessions.clear_media_target(phone)
        dropped = self.aggregator.cancel(phone)
        await self.media.release_refs(dropped)

    # === Routing ===

    async def _route(self, event: InboundEvent) -> None:
        phone = event.phone
        seller = self.store.find_seller_by_phone(phone)

        if seller is None:
            await self._start_onboarding(phone)
            return

        if seller.needs_onboarding:
            await self._handle_onboarding(seller, event)
            return

        if event.kind == "text" and is_cancel(event.body or ""):
            await self._cancel(seller)
            return

        if event.kind == "interactive":
            await self._handle_button(seller, event)
        elif event.kind == "image":
            await self._handle_image(seller, event)
        elif event.kind == "video":
            await self._handle_video(seller, event)
        else:
            await self._handle_text(seller, event)

    # === Onboarding ===

    async def _start_onboarding(self, phone: str) -> None:
        self.store.create_seller(phone)
        step = transition(Step.IDLE, Step.AWAITING_NAME)
        await self.sessions.set_state(phone, step, intent="ONBOARDING")
        await self.dispatcher.send_text(phone, replies.ONBOARDING_WELCOME)

    async def _handle_onboarding(self, seller: Seller, event: InboundEvent) -> None:
        phone = seller.phone
        # The seller record is authoritative, so onboarding survives session expiry.
        step = onboarding_step_for(seller.onboarding_step)
        text = (event.body or "").strip() if event.kind == "text" else ""

        if not text or is_cancel(text):
            await self.sessions.set_state(phone, step, intent="ONBOARDING")
            prompt = replies.ASK_FULL_NAME_AGAIN if step == Step.AWAITING_NAME else replies.ASK_STORE_NAME_AGAIN
            await self.dispatcher.send_text(phone, prompt)
            return

        if step == Step.AWAITING_NAME:
            seller.name = text
            seller.onboarding_step = "name_entered"
            self.store.save_seller(seller)
            next_step = transition(Step.AWAITING_NAME, Step.AWAITING_STORE_NAME)
            await self.sessions.set_state(phone, next_step, intent="ONBOARDING", data={"name": text})
            await self.dispatcher.send_text(phone, replies.ASK_STORE_NAME.format(name=text))
            return

        seller.store_name = text
        seller.onboarding_step = "complete"
        seller.status = "pending"
        seller = self.store.save_seller(seller)
        await self.sessions.set_state(phone, reset(step))
        logger.info(
            "Seller onboarding complete",
            extra={"context": {"phone": phone, "seller_id": str(seller.id)}},
        )
        await self.dispatcher.send_text(phone, replies.ONBOARDING_COMPLETE.format(store_name=text))
        await self._send_menu(seller)

    # === Buttons ===

    async def _handle_button(self, seller: Seller, event: InboundEvent) -> None:
        phone = seller.phone
        command = parse_button_id(event.button_id)
        state = await self.sessions.get_state(phone)

        if command is None or command.intent == Intent.ONBOARDING_START:
            if command is None:
                await self.dispatcher.send_text(phone, replies.OPTION_EXPIRED)
            await self._reset(phone, state)
            await self._send_menu(seller)
            return

        if command.intent in GLOBAL_INTENTS:
            # A pending free-text product must not be created behind the new flow.
            await self.media.release_refs(self.aggregator.cancel(phone))
            if not state.is_idle:
                await self._reset(phone, state)
            await self._handle_global(seller, command)
            return

        if not is_allowed_in_step(command, state.step):
            bind(logger, phone=phone).info(
                "Out-of-step button",
                extra={"context": {"intent": command.intent.value, "step": state.step.value}},
            )
            await self._expire(seller, state)
            return

        if command.intent in SELECTED_INTENT_OPERATIONS:
            await self._handle_product_selected(seller, state, command)
        elif command.intent == Intent.UPDATE_FIELD_SELECT:
            await self._handle_field_selected(seller, state, command)
        elif command.intent == Intent.DELETE_CONFIRM:
            await self._handle_delete_confirm(seller, state, command)
        elif command.intent == Intent.IMAGE_REMOVAL_SELECTED:
            await self._handle_image_removal(seller, state, command)

    async def _handle_global(self, seller: Seller, command: ButtonCommand) -> None:
        phone = seller.phone
        intent = command.intent

        if intent == Intent.SHOW_MENU:
            await self._send_menu(seller)
        elif intent == Intent.MORE_OPTIONS:
            options = replies.more_options()
            await self.dispatcher.send_list(
                phone, options["body"], options["button_text"], options["sections"], header=options["header"]
            )
        elif intent == Intent.CANCEL_FLOW:
            await self._cancel(seller)
        elif intent == Intent.CREATE_PRODUCT:
            step = transition(Step.IDLE, Step.AWAITING_IMAGE)
            await self.sessions.set_state(phone, step, intent="ADD_PRODUCT")
            await self.dispatcher.send_text(phone, replies.SEND_PHOTO)
        elif intent == Intent.LIST_PRODUCTS:
            products = self.store.find_products_by_seller(seller, limit=PRODUCT_LIST_LIMIT)
            if products:
                await self.dispatcher.send_text(phone, replies.product_list(products))
            else:
                await self.dispatcher.send_text(phone, replies.NO_PRODUCTS)
            await self._send_menu(seller)
        else:
            await self._start_selection(seller, SELECTION_OPERATIONS[intent])

    async def _start_selection(self, seller: Seller, operation: str) -> None:
        phone = seller.phone
        products = self.store.find_products_by_seller(seller, limit=SELECTION_LIMIT)
        if not products:
            await self.dispatcher.send_text(phone, replies.NO_PRODUCTS)
            await self._send_menu(seller)
            return

        step = transition(Step.IDLE, Step.AWAITING_PRODUCT_SELECTION)
        await self.sessions.set_state(phone, step, intent=operation.upper(), data={"operation": operation})
        listing = replies.product_selection(products, operation)
        await self.dispatcher.send_list(
            phone,
            listing["body"],
            listing["button_text"],
            listing["sections"],
            header=listing["header"],
            footer=listing["footer"],
        )

    async def _handle_product_selected(self, seller: Seller, state: ConversationState, command: ButtonCommand) -> None:
        phone = seller.phone
        operation = state.data.get("operation")
        if operation not in SELECTED_INTENT_OPERATIONS[command.intent]:
            await self._expire(seller, state)
            return

        product = self.store.get_product(seller, command.product_id)
        if product is None:
            await self._not_found(seller, state)
            return

        if operation == "update":
            step = transition(state.step, Step.AWAITING_UPDATE_FIELD)
            await self.sessions.set_state(
                phone, step, intent="UPDATE_PRODUCT", data={"product_id": str(product.id), "product_name": product.name}
            )
            await self.dispatcher.send_buttons(
                phone,
                replies.choose_update_field(product.name),
                replies.UPDATE_FIELD_BUTTONS,
                header="Update Product",
            )
        elif operation == "delete":
            step = transition(state.step, Step.CONFIRM_DELETE)
            await self.sessions.set_state(
                phone, step, intent="DELETE_PRODUCT", data={"product_id": str(product.id), "product_name": product.name}
            )
            await self.dispatcher.send_buttons(
                phone,
                replies.confirm_delete(product.name),
                replies.CONFIRM_DELETE_BUTTONS,
                header="⚠️ Confirm Delete",
            )
        elif operation == "remove_images":
            await self._start_image_removal(seller, state, product)
        elif operation == "remove_video":
            await self._remove_video(seller, state, product)
        else:
            await self._set_media_target(seller, state, product, operation)

    async def _set_media_target(self, seller: Seller, state: ConversationState, product: Product, operation: str) -> None:
        phone = seller.phone
        await self._reset(phone, state)

        if operation == "images":
            if len(product.images or []) >= MAX_IMAGES:
                await self.sessions.clear_media_target(phone)
                await self.dispatcher.send_text(phone, replies.images_full(product.name))
                await self._send_menu(seller)
                return
            await self.sessions.set_media_target(phone, "image", str(product.id))
            await self.dispatcher.send_text(phone, replies.ready_for_images(product))
        else:
            await self.sessions.set_media_target(phone, "video", str(product.id))
            await self.dispatcher.send_text(phone, replies.ready_for_video(product))

    async def _start_image_removal(self, seller: Seller, state: ConversationState, product: Product) -> None:
        phone = seller.phone
        if not product.images:
            await self._reset(phone, state)
            await self.dispatcher.send_text(phone, replies.no_photos(product.name))
            await self._send_menu(seller)
            return

        step = transition(state.step, Step.AWAITING_IMAGE_REMOVAL)
        await self.sessions.set_state(
            phone, step, intent="REMOVE_IMAGES", data={"product_id": str(product.id), "product_name": product.name}
        )
        listing = replies.image_removal(product)
        await self.dispatcher.send_list(
            phone, listing["body"], listing["button_text"], listing["sections"], header=listing["header"]
        )

    async def _handle_image_removal(self, seller: Seller, state: ConversationState, command: ButtonCommand) -> None:
        phone = seller.phone
        choice = (command.image or "").upper()
        if choice == "ALL":
            positions = None
        elif choice.isdigit():
            positions = [int(choice)]
        else:
            await self._expire(seller, state)
            return

        result = await self.media.remove_images(seller, state.data.get("product_id"), positions)
        if not result.ok and result.error_code == NOT_FOUND:
            await self._not_found(seller, state)
            return

        await self._reset(phone, state)
        if result.ok:
            await self.dispatcher.send_text(phone, replies.images_removed(result.value.product, positions is None))
        else:
            await self.dispatcher.send_text(phone, f"❌ {result.error}")
        await self._send_menu(seller)

    async def _remove_video(self, seller: Seller, state: ConversationState, product: Product) -> None:
        phone = seller.phone
        result = await self.media.remove_video(seller, str(product.id))
        await self._reset(phone, state)
        if result.ok:
            await self.dispatcher.send_text(phone, replies.video_removed(result.value.product))
        else:
            await self.dispatcher.send_text(phone, f"❌ {result.error}")
        await self._send_menu(seller)

    async def _handle_field_selected(self, seller: Seller, state: ConversationState, command: ButtonCommand) -> None:
        step = transition(state.step, Step.AWAITING_UPDATE_VALUE)
        await self.sessions.set_state(
            seller.phone, step, intent=state.intent, data={**state.data, "field": command.field}
        )
        await self.dispatcher.send_text(seller.phone, replies.ENTER_VALUE[command.field])

    async def _handle_delete_confirm(self, seller: Seller, state: ConversationState, command: ButtonCommand) -> None:
        phone = seller.phone
        if not command.confirmed:
            await self._reset(phone, state)
            await self.dispatcher.send_text(phone, replies.DELETE_CANCELLED)
            await self._send_menu(seller)
            return

        product = self.store.get_product(seller, state.data.get("product_id"))
        if product is None:
            await self._not_found(seller, state)
            return

        await self.media.release_product_media(product)
        self.store.delete_product(product)
        await self._reset(phone, state)
        await self.dispatcher.send_text(phone, replies.product_deleted(product.name))
        await self._send_menu(seller)

    # === Text ===

    async def _handle_text(self, seller: Seller, event: InboundEvent) -> None:
        phone = seller.phone
        text = (event.body or "").strip()
        state = await self.sessions.get_state(phone)

        if state.step in ONBOARDING_STEPS:
            # Leftover onboarding step for an already onboarded seller.
            await self._reset(phone, state)
        elif accepts_text(state.step):
            if state.step == Step.AWAITING_PRODUCT_DETAILS:
                await self._create_from_details(seller, state, text)
            else:
                await self._apply_update(seller, state, text)
            return
        elif state.step in STEP_REPROMPTS:
            await self.dispatcher.send_text(phone, STEP_REPROMPTS[state.step])
            return

        if is_greeting(text):
            await self._send_menu(seller)
        elif looks_like_product_description(text):
            self.aggregator.buffer_text(phone, text)
        else:
            await self._show_product_or_hint(seller, text)

    async def _show_product_or_hint(self, seller: Seller, text: str) -> None:
        """A bare product name shows that product with its media links."""
        product = None
        if len(text) >= MIN_LOOKUP_LENGTH:
            product = self.store.find_product_by_fuzzy_name(seller, text)
        if product is not None:
            await self.dispatcher.send_text(seller.phone, replies.product_details(product))
        else:
            await self.dispatcher.send_text(seller.phone, replies.USE_BUTTONS)
        await self._send_menu(seller)

    async def _create_from_details(self, seller: Seller, state: ConversationState, text: str) -> None:
        phone = seller.phone
        if not text:
            await self.dispatcher.send_text(phone, replies.DESCRIBE_PRODUCT_AGAIN)
            return

        proposed = parse_product_details(text)
        images = []
        if state.data.get("image_url"):
            images.append({"url": state.data["image_url"], "external_id": state.data.get("image_external_id")})

        product = self._create_product(seller, proposed, images)
        await self.sessions.set_state(phone, reset(state.step))
        await self.dispatcher.send_text(phone, replies.product_created(product, proposed.price_missing))
        await self._send_menu(seller)

    async def _apply_update(self, seller: Seller, state: ConversationState, text: str) -> None:
        phone = seller.phone
        field = state.data.get("field")
        result = coerce_update_value(field, text)
        if not result.ok:
            await self.dispatcher.send_text(phone, f"❌ {result.error}")
            return

        product = self.store.get_product(seller, state.data.get("product_id"))
        if product is None:
            await self._not_found(seller, state)
            return

        updated = self.store.update_product(product, **{field: result.value})
        await self._reset(phone, state)
        bind(logger, phone=phone).info(
            "Product updated", extra={"context": {"product_id": str(product.id), "field": field}}
        )
        await self.dispatcher.send_text(phone, replies.product_updated(updated))
        await self._send_menu(seller)

    # === Media ===

    async def _upload_or_reject(self, phone: str, media_id: str) -> Optional[MediaRef]:
        try:
            return await self.media.upload_image(media_id)
        except MediaTooLargeError as e:
            await self.dispatcher.send_text(phone, replies.image_too_large(e.size_mb))
            return None

    async def _handle_image(self, seller: Seller, event: InboundEvent) -> None:
        phone = seller.phone
        state = await self.sessions.get_state(phone)

        if event.has_caption:
            # A captioned photo always starts a new product.
            await self.sessions.clear_media_target(phone)
            ref = await self._upload_or_reject(phone, event.media_id)
            if ref is None:
                return
            dropped = self.aggregator.buffer_captioned_image(phone, event.caption.strip(), ref)
            await self.media.release_refs(dropped)
            if not state.is_idle:
                await self._reset(phone, state)
            return

        if state.step == Step.AWAITING_IMAGE:
            ref = await self._upload_or_reject(phone, event.media_id)
            if ref is None:
                return
            step = transition(state.step, Step.AWAITING_PRODUCT_DETAILS)
            await self.sessions.set_state(
                phone,
                step,
                intent=state.intent,
                data={**state.data, "image_url": ref.url, "image_external_id": ref.external_id},
            )
            await self.dispatcher.send_text(phone, replies.DESCRIBE_PRODUCT)
            return

        if self.aggregator.has_buffer(phone):
            ref = await self._upload_or_reject(phone, event.media_id)
            if ref is None:
                return
            if self.aggregator.buffer_image(phone, ref):
                return
            await self.media.release_refs([ref])

        target = await self.sessions.get_media_target(phone)
        if target is None or target.media_type != "image":
            await self.dispatcher.send_text(phone, replies.WHICH_PRODUCT_IMAGE)
            return

        result = await self.media.attach_image(seller, target.product_id, event.media_id)
        if result.ok:
            if result.value.images_full:
                await self.sessions.clear_media_target(phone)
            await self.dispatcher.send_text(phone, replies.image_added(result.value.product, result.value.image_count))
            return

        if result.error_code in (NOT_FOUND, LIMIT_REACHED):
            await self.sessions.clear_media_target(phone)
        await self.dispatcher.send_text(phone, f"❌ {result.error}")
        if result.error_code == NOT_FOUND:
            await self._send_menu(seller)

    async def _handle_video(self, seller: Seller, event: InboundEvent) -> None:
        phone = seller.phone
        target = await self.sessions.get_media_target(phone)
        if target is None or target.media_type != "video":
            await self.dispatcher.send_text(phone, replies.WHICH_PRODUCT_VIDEO)
            return

        await self.dispatcher.send_text(phone, replies.UPLOADING_VIDEO)
        result = await self.media.attach_video(seller, target.product_id, event.media_id)
        if result.ok:
            await self.sessions.clear_media_target(phone)
            await self.dispatcher.send_text(
                phone, replies.video_added(result.value.product, result.value.duration_seconds)
            )
            return

        if result.error_code == NOT_FOUND:
            await self.sessions.clear_media_target(phone)
        await self.dispatcher.send_text(phone, f"❌ {result.error}")
        if result.error_code == NOT_FOUND:
            await self._send_menu(seller)

    # === Helpers ===

    def _create_product(self, seller: Seller, proposed: ProposedProduct, images: list[dict]) -> Product:
        return self.store.create_product(
            seller,
            name=proposed.name,
            description=proposed.description,
            price=proposed.price,
            category=proposed.category,
            brand=proposed.brand,
            condition=proposed.condition,
            stock=proposed.stock,
            images=images,
            specifications=dict(proposed.specifications),
        )

    async def _cancel(self, seller: Seller) -> None:
        await self.clear_context(seller.phone)
        await self.dispatcher.send_text(seller.phone, replies.CANCELLED)
        await self._send_menu(seller)

    async def _release_draft(self, state: ConversationState) -> None:
        """Delete the uploaded photo of an add-product flow that will not finish."""
        if state.step == Step.AWAITING_PRODUCT_DETAILS:
            await self.media.release(state.data.get("image_external_id"), "image")

    async def _reset(self, phone: str, state: ConversationState) -> None:
        await self._release_draft(state)
        await self.sessions.set_state(phone, reset(state.step))

    async def _expire(self, seller: Seller, state: ConversationState) -> None:
        await self._reset(seller.phone, state)
        await self.dispatcher.send_text(seller.phone, replies.OPTION_EXPIRED)
        await self._send_menu(seller)

    async def _not_found(self, seller: Seller, state: ConversationState) -> None:
        await self._reset(seller.phone, state)
        await self.dispatcher.send_text(seller.phone, replies.PRODUCT_NOT_FOUND)
        await self._send_menu(seller)

    async def _send_menu(self, seller: Seller) -> None:
        menu = replies.main_menu(seller)
        await self.dispatcher.send_buttons(
            seller.phone, menu["body"], menu["buttons"], header=menu["header"], footer=menu["footer"]
        )

    async def _apologize(self, phone: str) -> None:
        await self.dispatcher.send_text(phone, replies.PROCESSING_ERROR)

    async def _on_flush_error(self, phone: str, error: Exception) -> None:
        await self._apologize(phone)
