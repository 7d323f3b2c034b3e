import pytest

from inventory_agent.services.intent_service import (
    ButtonCommand,
    Intent,
    is_allowed_in_step,
    is_cancel,
    is_greeting,
    looks_like_product_description,
    normalize_for_matching,
    parse_button_id,
)
from inventory_agent.services.state_machine import Step


class TestParseButtonId:
    def test_static_ids(self):
        assert parse_button_id("ADD_PRODUCT") == ButtonCommand(Intent.CREATE_PRODUCT)
        assert parse_button_id("MAIN_MENU").intent == Intent.SHOW_MENU
        assert parse_button_id("MORE_OPTIONS").intent == Intent.MORE_OPTIONS

    def test_field_buttons_carry_field(self):
        assert parse_button_id("UPDATE_PRICE") == ButtonCommand(Intent.UPDATE_FIELD_SELECT, field="price")
        assert parse_button_id("UPDATE_NAME").field == "name"

    def test_confirm_buttons_carry_flag(self):
        assert parse_button_id("CONFIRM_DELETE_YES").confirmed is True
        assert parse_button_id("CONFIRM_DELETE_NO").confirmed is False

    def test_prefix_ids_extract_product_id(self):
        command = parse_button_id("DELETE_PRODUCT_3f2b6c1e")
        assert command.intent == Intent.DELETE_PRODUCT_SELECTED
        assert command.product_id == "3f2b6c1e"
        assert parse_button_id("UPDATE_PRODUCT_abc").intent == Intent.UPDATE_PRODUCT_SELECTED
        assert parse_button_id("SELECT_PRODUCT_abc").intent == Intent.PRODUCT_SELECTED

    def test_image_removal_ids_carry_position(self):
        assert parse_button_id("REMOVE_IMAGE_2") == ButtonCommand(Intent.IMAGE_REMOVAL_SELECTED, image="2")
        assert parse_button_id("REMOVE_IMAGE_ALL").image == "ALL"
        assert parse_button_id("REMOVE_IMAGES").intent == Intent.REMOVE_IMAGES
        assert parse_button_id("REMOVE_VIDEO").intent == Intent.REMOVE_VIDEO

    def test_bare_static_id_is_not_a_prefix_match(self):
        assert parse_button_id("UPDATE_PRODUCT").intent == Intent.UPDATE_PRODUCT
        assert parse_button_id("DELETE_PRODUCT").intent == Intent.DELETE_PRODUCT

    @pytest.mark.parametrize("button_id", [None, "", "SOMETHING_ELSE", "SELECT_PRODUCT_"])
    def test_unknown_ids_return_none(self, button_id):
        assert parse_button_id(button_id) is None

    def test_commands_are_frozen(self):
        command = parse_button_id("ADD_PRODUCT")
        with pytest.raises(Exception):
            command.intent = Intent.CANCEL_FLOW


class TestStepScope:
    def test_global_intents_allowed_anywhere(self):
        command = parse_button_id("ADD_PRODUCT")
        for step in Step:
            assert is_allowed_in_step(command, step)

    def test_scoped_intent_only_in_its_step(self):
        command = parse_button_id("CONFIRM_DELETE_YES")
        assert is_allowed_in_step(command, Step.CONFIRM_DELETE)
        assert not is_allowed_in_step(command, Step.IDLE)
        assert not is_allowed_in_step(parse_button_id("UPDATE_PRICE"), Step.AWAITING_PRODUCT_SELECTION)

    def test_image_removal_only_while_choosing_photo(self):
        command = parse_button_id("REMOVE_IMAGE_1")
        assert is_allowed_in_step(command, Step.AWAITING_IMAGE_REMOVAL)
        assert not is_allowed_in_step(command, Step.AWAITING_PRODUCT_SELECTION)


class TestKeywords:
    def test_normalize_for_matching(self):
        assert normalize_for_matching("  Cancel!!  ") == "cancel"
        assert normalize_for_matching("Band   Karo") == "band karo"
        assert normalize_for_matching("") == ""

    @pytest.mark.parametrize("text", ["cancel", "STOP", "abort.", "exit", "quit", "nahi"])
    def test_cancel_keywords(self, text):
        assert is_cancel(text)

    def test_cancel_requires_whole_message(self):
        assert not is_cancel("cancel my order of shuttles")

    @pytest.mark.parametrize("text", ["hi", "Hello!", "salam", "menu"])
    def test_greetings(self, text):
        assert is_greeting(text)

    def test_not_greeting(self):
        assert not is_greeting("this racket")

    @pytest.mark.parametrize(
        "text",
        ["Yonex racket for sale", "add new shoes", "Victor bag 3500", "price 15000", "shuttles 2k"],
    )
    def test_product_descriptions(self, text):
        assert looks_like_product_description(text)

    @pytest.mark.parametrize("text", ["thanks", "ok", "how are you"])
    def test_not_product_descriptions(self, text):
        assert not looks_like_product_description(text)
