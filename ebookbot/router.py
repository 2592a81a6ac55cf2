import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from ebookbot import catalog, ledger
from ebookbot.database import ResilientStore
from ebookbot.delivery import DeliverySigner
from ebookbot.errors import (
    DuplicateSession,
    InvalidInput,
    OrderNotFound,
    PaymentTransient,
    ProductNotFound,
    SessionNotFound,
    StoreUnavailable,
)
from ebookbot.models import PAID
from ebookbot.stripe_service import PaymentGateway, to_minor_units

logger = logging.getLogger(__name__)

GREETINGS = {"hi", "hii", "hello", "helo"}

GREETING = "👋 Hi! Type `!ebooks` to see available eBooks!"
NO_ITEMS = "📚 No ebooks found yet."
BUY_USAGE = "❌ Please specify book name. Example: `!buy bookname`"
INVALID_BOOK = "❌ Invalid ebook name."
PAYMENT_ERROR = "❌ Payment error: could not start checkout. Please try again later."
IN_PROGRESS = "⏳ A checkout for this session is already in progress."
PAID_USAGE = "❌ Provide session ID. Example: `!paid cs_test_12345`"
INVALID_SESSION = "❌ Invalid session ID."
PAYMENT_UNREACHABLE = "❌ Could not reach the payment provider. Please try again."
NO_ORDER = "❌ No order found for this session ID."
NOT_COMPLETED = "❌ Payment not completed yet."
NO_PURCHASES = "📦 You haven't purchased any ebooks yet."
DB_DOWN = "❌ Database not connected. Try again later..."
UNEXPECTED = "❌ Something went wrong. Please try again later."


class CommandRouter:
    """Turns one chat message into at most one reply.

    Holds no per-user state, every call opens its own database sessions, so
    one router instance serves concurrent messages.
    """

    def __init__(
        self,
        store: ResilientStore,
        gateway: PaymentGateway,
        delivery: DeliverySigner,
        success_url: str,
        cancel_url: str,
        currency: str = "usd",
    ):
        self.store = store
        self.gateway = gateway
        self.delivery = delivery
        self.success_url = success_url
        self.cancel_url = cancel_url
        self.currency = currency

    def handle(self, author_id, text: str, author_is_bot: bool = False) -> Optional[str]:
        if author_is_bot:
            return None

        content = (text or "").strip()
        lower = content.lower()
        parts = content.split(maxsplit=1)
        command = parts[0].lower() if parts else ""
        argument = parts[1].strip() if len(parts) > 1 else ""

        try:
            if lower in GREETINGS:
                return GREETING
            if lower == "!ebooks":
                return self.list_catalog()
            if command == "!buy":
                return self.buy(author_id, argument)
            if command == "!paid":
                return self.confirm(argument)
            if lower == "!orders":
                return self.list_orders(author_id)
        except InvalidInput as e:
            return str(e)
        except StoreUnavailable:
            logger.error("Store unavailable while handling %r from %s", command, author_id)
            return DB_DOWN
        except Exception:
            logger.exception("Unexpected error while handling %r from %s", command, author_id)
            return UNEXPECTED

        return None

    def list_catalog(self) -> str:
        products = catalog.list_all(self.store)
        if not products:
            return NO_ITEMS

        msg = "📚 **Available Ebooks:**\n"
        for p in products:
            msg += f"**{p.id}. {p.title}** → `!buy {p.title}` 💵 {p.price}$\n"
        return msg

    def buy(self, buyer_id, title: str) -> str:
        if not title:
            raise InvalidInput(BUY_USAGE)

        try:
            product = catalog.find_by_title(self.store, title)
        except ProductNotFound:
            return INVALID_BOOK

        try:
            session = self.gateway.create_checkout_session(
                product.title,
                to_minor_units(product.price),
                self.currency,
                self.success_url,
                self.cancel_url,
            )
        except PaymentTransient:
            return PAYMENT_ERROR

        try:
            ledger.create_pending(self.store, str(buyer_id), product.id, session.id)
        except DuplicateSession:
            return IN_PROGRESS
        except IntegrityError:
            logger.exception("Could not record order for session %s", session.id)
            return PAYMENT_ERROR

        logger.info("Created pending order for %s (%s), session %s", buyer_id, product.title, session.id)
        return (
            f"💳 Click to pay for **{product.title}**: {session.url}\n"
            f"After payment, type `!paid {session.id}`"
        )

    def confirm(self, argument: str) -> str:
        if not argument:
            raise InvalidInput(PAID_USAGE)
        session_id = argument.split()[0]

        try:
            order = ledger.find_by_session_id(self.store, session_id)
        except OrderNotFound:
            order = None

        # repeat confirmations are answered from the ledger alone
        if order is not None and order.status == PAID:
            return self._already_paid(order.product.title, session_id)

        try:
            payment = self.gateway.retrieve_session(session_id)
        except SessionNotFound:
            return INVALID_SESSION
        except PaymentTransient:
            return PAYMENT_UNREACHABLE

        if order is None:
            return NO_ORDER

        if payment.status != PAID:
            return NOT_COMPLETED

        order, changed = ledger.mark_paid(self.store, session_id)
        title = order.product.title
        if not changed:
            # a concurrent confirmation got there first
            return self._already_paid(title, session_id)
        logger.info("Order %s for session %s marked paid", order.id, session_id)
        return (
            f"✅ Thank you for your purchase! Download your **{title}** here: "
            f"{self.delivery.reference(title, session_id)}"
        )

    def list_orders(self, buyer_id) -> str:
        orders = ledger.list_paid_for_buyer(self.store, str(buyer_id))
        if not orders:
            return NO_PURCHASES

        msg = "📦 **Your Purchased Ebooks:**\n"
        for order, title in orders:
            msg += f"- {title} → {self.delivery.reference(title, order.stripe_session_id)}\n"
        return msg

    def _already_paid(self, title: str, session_id: str) -> str:
        return f"✅ Already paid! Here's your **{title}** ebook: {self.delivery.reference(title, session_id)}"
