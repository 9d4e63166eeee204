"""
Product and stock receipt routes.

Endpoints:
  POST /api/products                         – create a product
  GET  /api/products                         – list products with average cost
  GET  /api/products/{id}                    – one product
  POST /api/inventory/receipts               – receive stock, update average cost
  POST /api/inventory/average-cost/preview   – weighted average without saving
  GET  /api/inventory/valuation              – Σ stock × average cost
  GET  /api/inventory/batches                – received batches, newest first
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session, select

from app.core.database import get_session
from app.models.inventory import Product
from app.schemas.responses import (
    AverageCostPreviewIn,
    AverageCostPreviewRead,
    ProductCreate,
    ProductRead,
    StockBatchRead,
    StockReceiptIn,
)
from app.services.costing import (
    InventoryValuation,
    ReceiptResult,
    StockReceivingService,
    apply_receipt,
)

inventory_router = APIRouter(prefix="/api", tags=["inventory"])


@inventory_router.post("/products", response_model=ProductRead, status_code=201)
def create_product(body: ProductCreate, session: Session = Depends(get_session)):
    name = body.name.strip()
    if session.exec(select(Product).where(Product.name == name)).first():
        raise HTTPException(status_code=409, detail=f"Product {name!r} already exists")
    product = Product(**body.model_dump(exclude={"name"}), name=name)
    session.add(product)
    session.commit()
    session.refresh(product)
    return ProductRead.model_validate(product)


@inventory_router.get("/products", response_model=list[ProductRead])
def list_products(session: Session = Depends(get_session)):
    rows = session.exec(select(Product).order_by(Product.name)).all()
    return [ProductRead.model_validate(p) for p in rows]


@inventory_router.get("/products/{product_id}", response_model=ProductRead)
def get_product(product_id: int, session: Session = Depends(get_session)):
    product = session.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return ProductRead.model_validate(product)


@inventory_router.post("/inventory/receipts", response_model=ReceiptResult, status_code=201)
def receive_stock(body: StockReceiptIn, session: Session = Depends(get_session)):
    return StockReceivingService(session).receive_stock(
        product_id=body.product_id,
        quantity=body.quantity,
        unit_cost=body.unit_cost,
        location=body.location,
        received_at=body.received_at,
        actor_id=body.actor_id,
    )


@inventory_router.post("/inventory/average-cost/preview", response_model=AverageCostPreviewRead)
def preview_average_cost(body: AverageCostPreviewIn):
    new_avg = apply_receipt(
        body.product_id,
        body.existing_quantity,
        body.existing_average_cost,
        body.incoming_quantity,
        body.incoming_unit_cost,
    )
    return AverageCostPreviewRead(new_average_cost=new_avg)


@inventory_router.get("/inventory/valuation", response_model=InventoryValuation)
def inventory_valuation(session: Session = Depends(get_session)):
    return StockReceivingService(session).inventory_valuation()


@inventory_router.get("/inventory/batches", response_model=list[StockBatchRead])
def list_batches(
    product_id: Optional[int] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    session: Session = Depends(get_session),
):
    batches = StockReceivingService(session).list_batches(product_id, limit)
    return [StockBatchRead.model_validate(b) for b in batches]
