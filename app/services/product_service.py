from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Product, utcnow
from app.schemas import ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)


async def get_product(session: AsyncSession, product_id: int) -> Optional[Product]:
    result = await session.execute(select(Product).where(Product.id == product_id, Product.is_active.is_(True)))
    return result.scalar_one_or_none()


async def list_products(session: AsyncSession) -> Sequence[Product]:
    result = await session.execute(select(Product).where(Product.is_active.is_(True)).order_by(Product.id))
    return result.scalars().all()


async def list_products_by_category(session: AsyncSession, category: str) -> Sequence[Product]:
    # Products carry no category column; every active product is returned
    return await list_products(session)


async def search_products(session: AsyncSession, term: Optional[str]) -> Sequence[Product]:
    if not term or not term.strip():
        return await list_products(session)

    needle = term.strip().lower()
    result = await session.execute(
        select(Product)
        .where(
            Product.is_active.is_(True),
            or_(
                func.lower(Product.name).contains(needle, autoescape=True),
                func.lower(Product.description).contains(needle, autoescape=True),
            ),
        )
        .order_by(Product.id)
    )
    return result.scalars().all()


async def create_product(session: AsyncSession, payload: ProductCreate) -> Product:
    product = Product(**payload.model_dump())
    session.add(product)
    await session.commit()

    logger.info("Product created: %s", product.name)
    return product


async def update_product(session: AsyncSession, product_id: int, payload: ProductUpdate) -> Optional[Product]:
    product = await get_product(session, product_id)
    if product is None:
        return None

    for field, value in payload.model_dump().items():
        setattr(product, field, value)
    product.updated_at = utcnow()
    await session.commit()

    logger.info("Product updated: %s", product.name)
    return product


async def deactivate_product(session: AsyncSession, product_id: int) -> bool:
    product = await get_product(session, product_id)
    if product is None:
        return False

    product.is_active = False
    product.updated_at = utcnow()
    await session.commit()

    logger.info("Product deleted: %s", product.name)
    return True


async def adjust_stock(session: AsyncSession, product_id: int, quantity: int) -> bool:
    """Adds ``quantity`` (which may be negative) to the stock; refuses to go below zero."""
    product = await get_product(session, product_id)
    if product is None:
        return False

    if product.stock_quantity + quantity < 0:
        logger.warning("Insufficient stock for product: %s", product.name)
        return False

    product.stock_quantity += quantity
    product.updated_at = utcnow()
    await session.commit()

    logger.info("Stock updated for product %s: %+d", product.name, quantity)
    return True
