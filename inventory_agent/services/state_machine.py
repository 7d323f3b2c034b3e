from enum import Enum


class Step(str, Enum):
    IDLE = "IDLE"
    AWAITING_NAME = "AWAITING_NAME"
    AWAITING_STORE_NAME = "AWAITING_STORE_NAME"
    AWAITING_IMAGE = "AWAITING_IMAGE"
    AWAITING_PRODUCT_DETAILS = "AWAITING_PRODUCT_DETAILS"
    AWAITING_PRODUCT_SELECTION = "AWAITING_PRODUCT_SELECTION"
    AWAITING_UPDATE_FIELD = "AWAITING_UPDATE_FIELD"
    AWAITING_UPDATE_VALUE = "AWAITING_UPDATE_VALUE"
    CONFIRM_DELETE = "CONFIRM_DELETE"
    AWAITING_IMAGE_REMOVAL = "AWAITING_IMAGE_REMOVAL"


# Moves back to IDLE (cancel, timeout, flow completion) go through reset().
VALID_TRANSITIONS = {
    Step.IDLE: [Step.AWAITING_NAME, Step.AWAITING_IMAGE, Step.AWAITING_PRODUCT_SELECTION],
    Step.AWAITING_NAME: [Step.AWAITING_STORE_NAME],
    Step.AWAITING_STORE_NAME: [],
    Step.AWAITING_IMAGE: [Step.AWAITING_PRODUCT_DETAILS],
    Step.AWAITING_PRODUCT_DETAILS: [],
    Step.AWAITING_PRODUCT_SELECTION: [Step.AWAITING_UPDATE_FIELD, Step.CONFIRM_DELETE, Step.AWAITING_IMAGE_REMOVAL],
    Step.AWAITING_UPDATE_FIELD: [Step.AWAITING_UPDATE_VALUE],
    Step.AWAITING_UPDATE_VALUE: [],
    Step.CONFIRM_DELETE: [],
    Step.AWAITING_IMAGE_REMOVAL: [],
}

# Steps in which free text is part of the flow.
TEXT_STEPS = frozenset(
    {
        Step.AWAITING_NAME,
        Step.AWAITING_STORE_NAME,
        Step.AWAITING_PRODUCT_DETAILS,
        Step.AWAITING_UPDATE_VALUE,
    }
)

ONBOARDING_STEPS = frozenset({Step.AWAITING_NAME, Step.AWAITING_STORE_NAME})


class InvalidTransitionError(Exception):
    def __init__(self, from_step: Step, to_step: Step):
        self.from_step = from_step
        self.to_step = to_step
        super().__init__(f"Invalid transition: {from_step.value} -> {to_step.value}")


def can_transition(from_step: Step, to_step: Step) -> bool:
    """Check if transition is valid."""
    allowed = VALID_TRANSITIONS.get(from_step, [])
    return to_step in allowed


def transition(from_step: Step, to_step: Step) -> Step:
    """Perform step transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_step, to_step):
        raise InvalidTransitionError(from_step, to_step)
    return to_step


def reset(current_step: Step) -> Step:
    """Any step may fall back to IDLE."""
    return Step.IDLE


def accepts_text(step: Step) -> bool:
    return step in TEXT_STEPS


def onboarding_step_for(seller_onboarding_step: str) -> Step:
    """Map the persisted seller onboarding marker onto the conversation step."""
    if seller_onboarding_step == "name_entered":
        return Step.AWAITING_STORE_NAME
    if seller_onboarding_step == "new":
        return Step.AWAITING_NAME
    return Step.IDLE
