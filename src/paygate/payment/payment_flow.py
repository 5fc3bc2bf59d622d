from enum import Enum


class PaymentFlow(str, Enum):
    TWO_STEP = "two_step"
    ELICITATION = "elicitation"
    PROGRESS = "progress"
