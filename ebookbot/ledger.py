import logging
from typing import List, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ebookbot.database import ResilientStore
from ebookbot.errors import DuplicateSession, OrderNotFound
from ebookbot.models import PAID, PENDING, Order, Product

logger = logging.getLogger(__name__)


def _by_session(session_id: str):
    return select(Order).where(Order.stripe_session_id == session_id)


def create_pending(store: ResilientStore, buyer_id: str, product_id: int, session_id: str) -> Order:
    def insert(db):
        order = Order(
            discord_id=str(buyer_id),
            product_id=product_id,
            status=PENDING,
            stripe_session_id=session_id,
        )
        db.add(order)
        db.flush()
        return order

    try:
        return store.execute(insert)
    except IntegrityError:
        # the unique constraint is the only one a repeated session id can hit
        if store.execute(lambda db: db.execute(_by_session(session_id)).scalars().first()) is None:
            raise
        logger.warning("Order for session %s already exists", session_id)
        raise DuplicateSession(session_id)


def find_by_session_id(store: ResilientStore, session_id: str) -> Order:
    order = store.execute(lambda db: db.execute(_by_session(session_id)).scalars().first())
    if order is None:
        raise OrderNotFound(session_id)
    return order


def mark_paid(store: ResilientStore, session_id: str) -> Tuple[Order, bool]:
    """Move a pending order to paid. Returns the order and whether this call changed it."""

    def transition(db):
        result = db.execute(
            update(Order)
            .where(Order.stripe_session_id == session_id, Order.status == PENDING)
            .values(status=PAID)
            .execution_options(synchronize_session=False)
        )
        changed = result.rowcount == 1
        if not changed:
            logger.info("Order for session %s was not pending, nothing to update", session_id)
        return db.execute(_by_session(session_id)).scalars().first(), changed

    order, changed = store.execute(transition)
    if order is None:
        raise OrderNotFound(session_id)
    return order, changed


def list_paid_for_buyer(store: ResilientStore, buyer_id: str) -> List[Tuple[Order, str]]:
    def query(db):
        rows = db.execute(
            select(Order, Product.title)
            .join(Product, Order.product_id == Product.id)
            .where(Order.discord_id == str(buyer_id), Order.status == PAID)
            .order_by(Order.id)
        ).all()
        return [(order, title) for order, title in rows]

    return store.execute(query)
