"""Tests for the Stripe-backed payment gateway.

Stripe calls are replaced with monkeypatched stand-ins; no network access.
"""

import pytest
import stripe

from boxoffice.core.errors import (
    PaymentGatewayError,
    PaymentNotConfirmedError,
    RefundFailedError,
)
from boxoffice.services.booking import BookingEngine
from boxoffice.services.inventory import ShowingLocks
from boxoffice.services.payments import StripePaymentGateway, build_metadata
from boxoffice.services.selection import SeatList

API_KEY = "sk_test_boxoffice"


def stripe_intent(**values):
    base = {
        "id": "pi_123",
        "object": "payment_intent",
        "client_secret": "pi_123_secret",
        "amount": 2500,
        "amount_received": 0,
        "currency": "eur",
        "status": "succeeded",
        "metadata": {"user_id": "alice", "showing_id": "s-1", "seat_count": "2"},
    }
    base.update(values)
    return stripe.PaymentIntent.construct_from(base, API_KEY)


@pytest.fixture
def stripe_gateway() -> StripePaymentGateway:
    return StripePaymentGateway(API_KEY)


class TestStripePaymentGateway:
    """Tests for StripePaymentGateway."""

    def test_missing_key(self, monkeypatch):
        """An unconfigured gateway fails before calling Stripe."""
        calls = []
        monkeypatch.setattr(stripe.PaymentIntent, "create", lambda **kw: calls.append(kw))
        with pytest.raises(PaymentGatewayError):
            StripePaymentGateway("").create_intent(100, "eur", {})
        assert calls == []

    def test_create_intent(self, monkeypatch, stripe_gateway):
        """Amount, currency, metadata and key are passed through."""
        seen = {}

        def create(**kwargs):
            seen.update(kwargs)
            return stripe_intent(status="requires_payment_method")

        monkeypatch.setattr(stripe.PaymentIntent, "create", create)
        metadata = build_metadata("alice", "s-1", 2, ["A2", "A1"])
        intent = stripe_gateway.create_intent(2500, "eur", metadata)

        assert seen == {"amount": 2500, "currency": "eur", "metadata": metadata, "api_key": API_KEY}
        assert (intent.id, intent.client_secret, intent.amount) == ("pi_123", "pi_123_secret", 2500)
        assert metadata["seat_ids"] == "A1,A2"

    def test_create_intent_failure(self, monkeypatch, stripe_gateway):
        """Stripe errors surface as PaymentGatewayError."""
        def create(**kwargs):
            raise stripe.APIConnectionError("network down")

        monkeypatch.setattr(stripe.PaymentIntent, "create", create)
        with pytest.raises(PaymentGatewayError):
            stripe_gateway.create_intent(2500, "eur", {})

    def test_retrieve_prefers_amount_received(self, monkeypatch, stripe_gateway):
        """The captured amount wins over the requested one."""
        monkeypatch.setattr(
            stripe.PaymentIntent, "retrieve",
            lambda payment_id, **kw: stripe_intent(amount=2500, amount_received=2000),
        )
        record = stripe_gateway.retrieve("pi_123")
        assert record.amount == 2000
        assert record.succeeded
        assert record.metadata["user_id"] == "alice"

    def test_retrieve_falls_back_to_amount(self, monkeypatch, stripe_gateway):
        """Without a captured amount the intent amount is used."""
        monkeypatch.setattr(
            stripe.PaymentIntent, "retrieve",
            lambda payment_id, **kw: stripe_intent(amount_received=0),
        )
        assert stripe_gateway.retrieve("pi_123").amount == 2500

    def test_retrieve_unknown_intent(self, monkeypatch, stripe_gateway):
        """An id Stripe does not know reads back as None."""
        def retrieve(payment_id, **kwargs):
            raise stripe.InvalidRequestError("No such payment_intent", "intent")

        monkeypatch.setattr(stripe.PaymentIntent, "retrieve", retrieve)
        assert stripe_gateway.retrieve("pi_missing") is None

    def test_retrieve_failure(self, monkeypatch, stripe_gateway):
        """Other Stripe errors surface as PaymentGatewayError."""
        def retrieve(payment_id, **kwargs):
            raise stripe.APIConnectionError("network down")

        monkeypatch.setattr(stripe.PaymentIntent, "retrieve", retrieve)
        with pytest.raises(PaymentGatewayError):
            stripe_gateway.retrieve("pi_123")

    def test_refund(self, monkeypatch, stripe_gateway):
        """Refunds target the payment intent."""
        seen = {}
        monkeypatch.setattr(stripe.Refund, "create", lambda **kw: seen.update(kw))
        stripe_gateway.refund("pi_123")
        assert seen == {"payment_intent": "pi_123", "api_key": API_KEY}

    def test_refund_failure(self, monkeypatch, stripe_gateway):
        """A refused refund raises RefundFailedError."""
        def create(**kwargs):
            raise stripe.InvalidRequestError("Charge already refunded", "charge")

        monkeypatch.setattr(stripe.Refund, "create", create)
        with pytest.raises(RefundFailedError):
            stripe_gateway.refund("pi_123")


def test_commit_with_unknown_stripe_intent(monkeypatch, session_factory, make_showing, alice):
    """A commit against an intent Stripe does not know is not confirmed."""
    def retrieve(payment_id, **kwargs):
        raise stripe.InvalidRequestError("No such payment_intent", "intent")

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", retrieve)
    engine = BookingEngine(
        session_factory=session_factory,
        gateway=StripePaymentGateway(API_KEY),
        locks=ShowingLocks(timeout=5),
    )
    showing_id = make_showing()
    with pytest.raises(PaymentNotConfirmedError):
        engine.commit(showing_id, SeatList(["A1"]), "pi_missing", alice)
