# app/routers/products.py

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import require_roles
from app.database import get_session
from app.models import ROLE_ADMIN
from app.schemas import MessageResponse, ProductCreate, ProductOut, ProductUpdate, StockUpdate
from app.services import product_service
from guard.identity import Identity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])

require_admin = require_roles(ROLE_ADMIN)


@router.get("", response_model=List[ProductOut])
async def list_products(session: AsyncSession = Depends(get_session)):
    return await product_service.list_products(session)


@router.get("/search", response_model=List[ProductOut])
async def search_products(
    search_term: Optional[str] = Query(None, alias="searchTerm", max_length=200),
    session: AsyncSession = Depends(get_session),
):
    return await product_service.search_products(session, search_term)


@router.get("/category/{category}", response_model=List[ProductOut])
async def products_by_category(category: str, session: AsyncSession = Depends(get_session)):
    return await product_service.list_products_by_category(session, category)


@router.get("/{product_id}", response_model=ProductOut)
async def get_product(product_id: int, session: AsyncSession = Depends(get_session)):
    product = await product_service.get_product(session, product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


@router.post("", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
):
    product = await product_service.create_product(session, payload)
    logger.info("Product created by admin %s: %s", admin.subject_id, product.id)
    return product


@router.put("/{product_id}", response_model=MessageResponse)
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
):
    if await product_service.update_product(session, product_id, payload) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return MessageResponse(message="Product updated successfully")


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(
    product_id: int,
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
):
    if not await product_service.deactivate_product(session, product_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return MessageResponse(message="Product deleted successfully")


@router.patch("/{product_id}/stock", response_model=MessageResponse)
async def update_stock(
    product_id: int,
    payload: StockUpdate,
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
):
    if not await product_service.adjust_stock(session, product_id, payload.quantity):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Failed to update stock. Product not found or insufficient stock.",
        )

    logger.info("Stock updated by admin %s: product=%s quantity=%+d", admin.subject_id, product_id, payload.quantity)
    return MessageResponse(message="Stock updated successfully")
