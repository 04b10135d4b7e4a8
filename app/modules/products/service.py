"""
Catálogo de productos consumido por pedidos y facturación.
"""
import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.modules.products.models import Product
from app.modules.products.schemas import ProductCreate
from app.modules.taxes.models import Tax

logger = logging.getLogger(__name__)


def find_product_by_id(db: Session, product_id: int) -> Optional[Product]:
    return db.query(Product).filter(Product.id == product_id).first()


def get_product_or_404(db: Session, product_id: int) -> Product:
    product = find_product_by_id(db, product_id)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Producto no encontrado"
        )
    return product


def get_products(db: Session, search: Optional[str] = None, limit: int = 100, offset: int = 0) -> dict:
    query = db.query(Product).filter(Product.is_active == True)
    if search:
        query = query.filter(Product.name.ilike(f"%{search}%"))

    total = query.count()
    products = query.order_by(Product.name).offset(offset).limit(limit).all()
    return {"products": products, "total": total, "limit": limit, "offset": offset}


def create_product(db: Session, data: ProductCreate) -> Product:
    if data.tax_id is not None:
        tax = db.query(Tax).filter(Tax.id == data.tax_id).first()
        if not tax:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Impuesto no encontrado"
            )

    try:
        product = Product(**data.model_dump())
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    except Exception as e:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error interno del servidor: {str(e)}"
        )


def decrement_stock(db: Session, product_id: int, quantity: int) -> Optional[Product]:
    """
    Descontar stock de un producto sin bajar de cero.

    Usa bloqueo de fila para que dos facturas simultáneas no pierdan
    descuentos. Retorna None si el producto ya no existe.
    """
    product = db.query(Product).filter(Product.id == product_id).with_for_update().first()
    if not product:
        logger.warning(f"Stock no actualizado: producto {product_id} no existe")
        return None

    previous = product.quantity or 0
    product.quantity = max(0, previous - int(quantity or 0))
    db.commit()
    db.refresh(product)

    logger.info(
        f"Stock actualizado producto {product_id}: {previous} -> {product.quantity} (salida {quantity})"
    )
    return product
