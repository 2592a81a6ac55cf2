import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

import stripe

from ebookbot.errors import PaymentTransient, SessionNotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionHandle:
    id: str
    url: str


@dataclass(frozen=True)
class PaymentSession:
    id: str
    status: str        # Stripe payment_status: paid | unpaid | no_payment_required
    checkout_url: str


class PaymentGateway(Protocol):
    def create_checkout_session(
        self, product_title: str, unit_amount: int, currency: str, success_url: str, cancel_url: str
    ) -> SessionHandle:
        ...

    def retrieve_session(self, session_id: str) -> PaymentSession:
        ...


def to_minor_units(price) -> int:
    cents = (Decimal(str(price)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


def configure_stripe(timeout: float):
    # one attempt per call; failures surface to the user as "try again"
    stripe.max_network_retries = 0
    stripe.default_http_client = stripe.RequestsClient(timeout=timeout)


class StripeGateway:
    def __init__(self, api_key: str):
        self.api_key = api_key

    def create_checkout_session(
        self, product_title: str, unit_amount: int, currency: str, success_url: str, cancel_url: str
    ) -> SessionHandle:
        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                payment_method_types=["card"],
                line_items=[{
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": product_title},
                        "unit_amount": unit_amount,
                    },
                    "quantity": 1,
                }],
                mode="payment",
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as e:
            logger.error("Stripe checkout session creation failed: %s", type(e).__name__)
            raise PaymentTransient(str(e)) from e

        return SessionHandle(id=session.id, url=session.url)

    def retrieve_session(self, session_id: str) -> PaymentSession:
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        except stripe.InvalidRequestError as e:
            logger.info("Stripe does not know session %s", session_id)
            raise SessionNotFound(session_id) from e
        except stripe.StripeError as e:
            logger.error("Stripe session retrieval failed: %s", type(e).__name__)
            raise PaymentTransient(str(e)) from e

        return PaymentSession(
            id=session.id,
            status=session.payment_status,
            checkout_url=session.url or "",
        )
