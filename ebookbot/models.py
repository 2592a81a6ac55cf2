from sqlalchemy import Column, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from ebookbot.database import Base

PENDING = "pending"
PAID = "paid"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), unique=True, nullable=False)  # matched case-insensitively
    price = Column(Numeric(10, 2), nullable=False)


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("stripe_session_id", name="uq_orders_stripe_session_id"),
    )

    id = Column(Integer, primary_key=True)
    discord_id = Column(String(64), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    status = Column(String(16), nullable=False, default=PENDING)  # pending | paid
    stripe_session_id = Column(String(255), nullable=False)        # Stripe Checkout Session ID

    product = relationship(Product, lazy="joined")
