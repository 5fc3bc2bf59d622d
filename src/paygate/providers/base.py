# paygate/providers/base.py
"""Payment provider contract.

Concrete providers implement ``_create_payment`` and ``_get_payment_status``.
The public methods validate their inputs before any network call so that a
bad amount or an empty payment id never reaches the provider.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, NamedTuple, Optional
import logging

import requests

from ..errors import PaymentValidationError, ProviderError
from ..utils.payment import validate_amount

logger = logging.getLogger(__name__)


class CreatePaymentResult(NamedTuple):
    payment_id: str
    payment_url: str


class BasePaymentProvider(ABC):
    name = "base"
    timeout = 30

    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.session = session or requests.Session()

    def get_name(self) -> str:
        return self.name

    # ------------------------------------------------------------------ public

    def create_payment(self, amount, currency: str, description: str) -> CreatePaymentResult:
        """Create a payment and return ``(payment_id, payment_url)``."""
        amount = validate_amount(amount)
        if not currency or not str(currency).strip():
            raise PaymentValidationError("currency")
        if not description or not str(description).strip():
            raise PaymentValidationError("description")

        logger.debug(f"[{self.name}] create_payment {amount} {currency} {description!r}")
        payment_id, payment_url = self._create_payment(amount, str(currency).strip(), description)
        if not payment_id or not payment_url:
            raise ProviderError("create_payment", "provider returned no payment id or url")
        return CreatePaymentResult(str(payment_id), payment_url)

    def get_payment_status(self, payment_id: str) -> str:
        """Return the provider-native status string for ``payment_id``."""
        if not payment_id or not str(payment_id).strip():
            raise PaymentValidationError("payment_id")

        status = self._get_payment_status(str(payment_id))
        logger.debug(f"[{self.name}] get_payment_status {payment_id} -> {status}")
        return status

    # ---------------------------------------------------------------- subclass

    @abstractmethod
    def _create_payment(self, amount: Decimal, currency: str, description: str):
        """Create the payment at the provider; return ``(payment_id, payment_url)``."""

    @abstractmethod
    def _get_payment_status(self, payment_id: str) -> str:
        """Fetch the raw provider status."""

    def _build_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _request(self, step: str, method: str, url: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send a request and return the decoded JSON body.

        ``step`` names the operation in any raised :class:`ProviderError`.
        """
        kwargs: Dict[str, Any] = {"headers": self._build_headers(), "timeout": self.timeout}
        if method.upper() == "GET":
            kwargs["params"] = data
        else:
            kwargs["json"] = data or {}

        try:
            resp = self.session.request(method.upper(), url, **kwargs)
        except requests.RequestException as e:
            logger.error(f"[{self.name}] network error {method} {url}: {e}")
            raise ProviderError(step, f"network error: {e}") from e

        if not resp.ok:
            logger.error(f"[{self.name}] HTTP {resp.status_code} {method} {url}: {resp.text}")
            raise ProviderError(step, f"HTTP {resp.status_code}")

        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError(step, "malformed response body") from e
