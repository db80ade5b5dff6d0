# railbook/payments.py
"""
Payment details validation and the payment gateway seam.

The real gateway is an external system; MockPaymentGateway stands in for it
and always approves after a fixed delay.
"""
import logging
import re
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from railbook.exceptions import InvalidPaymentDetails
from railbook.schemas import PaymentDetails, PaymentMethod

logger = logging.getLogger(__name__)

WALLET_PROVIDERS = ("paytm", "phonepe", "gpay")
CARD_NUMBER_PATTERN = re.compile(r"[0-9]{16}")
CARD_EXPIRY_PATTERN = re.compile(r"([0-9]{2})/([0-9]{2})")
CVV_PATTERN = re.compile(r"[0-9]{3}")


def validate_payment(details: PaymentDetails) -> None:
    """Raises InvalidPaymentDetails naming the first offending field."""
    if details.method == PaymentMethod.upi:
        if not details.upi_id or "@" not in details.upi_id:
            raise InvalidPaymentDetails("Please enter a valid UPI ID")
    elif details.method == PaymentMethod.card:
        number = re.sub(r"\s", "", details.card_number or "")
        if not CARD_NUMBER_PATTERN.fullmatch(number):
            raise InvalidPaymentDetails("Please enter a valid 16-digit card number")
        match = CARD_EXPIRY_PATTERN.fullmatch(details.card_expiry or "")
        if not match or not 1 <= int(match.group(1)) <= 12:
            raise InvalidPaymentDetails("Please enter valid expiry (MM/YY)")
        if not CVV_PATTERN.fullmatch(details.card_cvv or ""):
            raise InvalidPaymentDetails("Please enter valid CVV")
    elif details.method == PaymentMethod.wallet:
        if details.wallet_type not in WALLET_PROVIDERS:
            raise InvalidPaymentDetails(
                f"Please choose a wallet: {', '.join(WALLET_PROVIDERS)}")


@dataclass
class PaymentResult:
    success: bool
    reference: Optional[str] = None
    message: str = ""


class PaymentGateway(ABC):
    @abstractmethod
    def charge(self, amount: int, details: PaymentDetails) -> PaymentResult:
        """Charges amount and reports the outcome. May block; callers bound the wait."""


class MockPaymentGateway(PaymentGateway):
    def __init__(self, delay_seconds: float = 2.0):
        self.delay_seconds = delay_seconds

    def charge(self, amount: int, details: PaymentDetails) -> PaymentResult:
        time.sleep(self.delay_seconds)
        reference = f"PAY-{uuid.uuid4().hex[:12].upper()}"
        logger.info(f"Mock gateway approved {amount} via {details.method.value} ({reference})")
        return PaymentResult(success=True, reference=reference, message="Payment successful")
