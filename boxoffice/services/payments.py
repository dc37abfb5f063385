"""Payment gateway interface and the Stripe implementation.

The booking engine only ever trusts what it reads back through
``retrieve``; amounts and metadata asserted by a client are ignored.
Gateways must be swappable (tests inject an in-memory fake).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

import stripe

from boxoffice.core.errors import PaymentGatewayError, RefundFailedError

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "succeeded"

META_USER_ID = "user_id"
META_SHOWING_ID = "showing_id"
META_SEAT_COUNT = "seat_count"
META_SEAT_IDS = "seat_ids"


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    client_secret: str
    amount: int
    currency: str


@dataclass(frozen=True)
class PaymentRecord:
    id: str
    status: str
    amount: int
    currency: str
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == PAYMENT_SUCCEEDED


def build_metadata(user_id: str, showing_id: str, seat_count: int, seat_ids: list[str]) -> dict[str, str]:
    """Metadata embedded in an intent at quote time; providers store strings only."""
    return {
        META_USER_ID: str(user_id),
        META_SHOWING_ID: str(showing_id),
        META_SEAT_COUNT: str(seat_count),
        META_SEAT_IDS: ",".join(sorted(seat_ids)),
    }


class PaymentGateway(ABC):
    """Interface for the external payment provider."""

    @abstractmethod
    def create_intent(self, amount: int, currency: str, metadata: dict[str, str]) -> PaymentIntent:
        """Create a payment intent for ``amount`` minor units."""
        ...

    @abstractmethod
    def retrieve(self, payment_id: str) -> Optional[PaymentRecord]:
        """Return the provider's view of a payment, or None if unknown."""
        ...

    @abstractmethod
    def refund(self, payment_id: str) -> None:
        """Refund a payment in full.

        Raises:
            RefundFailedError: If the provider refuses or cannot be reached.
        """
        ...


class StripePaymentGateway(PaymentGateway):
    """Stripe PaymentIntents-backed gateway."""

    def __init__(self, api_key: str) -> None:
        self._api_key = api_key

    def _require_key(self) -> None:
        if not self._api_key:
            raise PaymentGatewayError("Payment provider is not configured")

    def create_intent(self, amount: int, currency: str, metadata: dict[str, str]) -> PaymentIntent:
        self._require_key()
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                metadata=metadata,
                api_key=self._api_key,
            )
        except stripe.StripeError as e:
            logger.exception("Stripe intent creation failed")
            raise PaymentGatewayError() from e
        return PaymentIntent(
            id=intent.id,
            client_secret=intent.client_secret,
            amount=intent.amount,
            currency=intent.currency,
        )

    def retrieve(self, payment_id: str) -> Optional[PaymentRecord]:
        self._require_key()
        try:
            intent = stripe.PaymentIntent.retrieve(payment_id, api_key=self._api_key)
        except stripe.InvalidRequestError:
            # Unknown or malformed intent id
            return None
        except stripe.StripeError as e:
            logger.exception("Stripe intent retrieval failed for %s", payment_id)
            raise PaymentGatewayError() from e
        amount = intent.get("amount_received") or intent.amount
        return PaymentRecord(
            id=intent.id,
            status=intent.status,
            amount=amount,
            currency=intent.currency,
            metadata={k: str(v) for k, v in (intent.metadata or {}).items()},
        )

    def refund(self, payment_id: str) -> None:
        self._require_key()
        try:
            stripe.Refund.create(payment_intent=payment_id, api_key=self._api_key)
        except stripe.StripeError as e:
            logger.exception("Stripe refund failed for %s", payment_id)
            raise RefundFailedError() from e
