from typing import List

from sqlalchemy import func, select

from ebookbot.database import ResilientStore
from ebookbot.errors import ProductNotFound
from ebookbot.models import Product


def find_by_title(store: ResilientStore, title: str) -> Product:
    # fold both sides in SQL so the database applies one case mapping
    wanted = (title or "").strip()

    def query(db):
        return db.execute(
            select(Product).where(func.lower(Product.title) == func.lower(wanted))
        ).scalars().first()

    product = store.execute(query)
    if product is None:
        raise ProductNotFound(title)
    return product


def list_all(store: ResilientStore) -> List[Product]:
    return store.execute(
        lambda db: list(db.execute(select(Product).order_by(Product.id)).scalars())
    )
