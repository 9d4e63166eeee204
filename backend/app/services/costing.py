"""
Weighted-average costing for stock receipts.

Formula:
    new_avg = (existing_qty × existing_avg + incoming_qty × incoming_cost)
              / (existing_qty + incoming_qty)

Example:
    100 units @ ₹10.00 on hand, receive 50 @ ₹12.00
    → (1000 + 600) / 150 = ₹10.67
"""
from __future__ import annotations

import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from loguru import logger
from pydantic import BaseModel
from sqlmodel import Session, col, func, select

from app.core.errors import NotFoundError, ValidationError
from app.models.inventory import Product, StockBatch, WarehouseStock

_CENT = Decimal("0.01")


class ReceiptResult(BaseModel):
    product_id: int
    batch_number: str
    quantity_before: float
    quantity_after: float
    average_cost_before: float
    average_cost_after: float
    unit_cost: float


class InventoryValuation(BaseModel):
    total_inventory_value: float
    total_quantity: float
    total_products: int


def apply_receipt(
    product_id: Optional[int],
    existing_quantity: float,
    existing_average_cost: float,
    incoming_quantity: float,
    incoming_unit_cost: float,
) -> float:
    """
    Return the product's new average unit cost after receiving stock.

    Pure: the caller persists the new average and the incremented quantity.
    product_id is only used in error messages.
    """
    for label, value in (
        ("Existing quantity", existing_quantity),
        ("Existing average cost", existing_average_cost),
        ("Receipt quantity", incoming_quantity),
        ("Unit cost", incoming_unit_cost),
    ):
        if value is None or not math.isfinite(value):
            raise ValidationError(
                f"{label} must be a finite number (product {product_id}, got {value})"
            )
    if incoming_quantity <= 0:
        raise ValidationError(
            f"Receipt quantity must be positive (product {product_id}, got {incoming_quantity})"
        )
    if existing_quantity < 0:
        raise ValidationError(
            f"Existing quantity cannot be negative (product {product_id}, got {existing_quantity})"
        )
    if incoming_unit_cost < 0:
        raise ValidationError(
            f"Unit cost cannot be negative (product {product_id}, got {incoming_unit_cost})"
        )

    if existing_quantity == 0:
        return incoming_unit_cost

    old_qty = Decimal(str(existing_quantity))
    new_qty = Decimal(str(incoming_quantity))
    old_value = old_qty * Decimal(str(existing_average_cost))
    new_value = new_qty * Decimal(str(incoming_unit_cost))

    new_avg = ((old_value + new_value) / (old_qty + new_qty)).quantize(
        _CENT, rounding=ROUND_HALF_UP
    )
    return float(new_avg)


class StockReceivingService:
    """Records stock receipts and keeps products.average_cost current."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def _on_hand(self, product_id: int) -> float:
        total = self.session.exec(
            select(func.sum(WarehouseStock.current_stock)).where(
                WarehouseStock.product_id == product_id
            )
        ).one()
        return float(total or 0.0)

    def _next_batch_number(self, product_id: int, received_at: datetime) -> str:
        day_start = received_at.replace(hour=0, minute=0, second=0, microsecond=0)
        day_end = day_start.replace(hour=23, minute=59, second=59, microsecond=999999)
        count = self.session.exec(
            select(func.count()).select_from(StockBatch).where(
                StockBatch.product_id == product_id,
                StockBatch.received_at >= day_start,
                StockBatch.received_at <= day_end,
            )
        ).one()
        return f"P{product_id}-{received_at:%Y%m%d}-{count + 1:03d}"

    def receive_stock(
        self,
        product_id: int,
        quantity: float,
        unit_cost: float,
        location: str = "Main",
        received_at: Optional[datetime] = None,
        actor_id: Optional[int] = None,
    ) -> ReceiptResult:
        """Batch row, stock increment and cost update commit together."""
        product = self.session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")

        received_at = received_at or datetime.utcnow()
        qty_before = self._on_hand(product_id)
        avg_before = product.average_cost or 0.0
        new_avg = apply_receipt(product_id, qty_before, avg_before, quantity, unit_cost)

        try:
            batch = StockBatch(
                batch_number=self._next_batch_number(product_id, received_at),
                product_id=product_id,
                location=location,
                quantity=quantity,
                unit_cost=unit_cost,
                received_at=received_at,
                received_by=actor_id,
            )
            self.session.add(batch)

            stock = self.session.exec(
                select(WarehouseStock).where(
                    WarehouseStock.product_id == product_id,
                    WarehouseStock.location == location,
                )
            ).first()
            if stock is None:
                stock = WarehouseStock(product_id=product_id, location=location)
            stock.current_stock = (stock.current_stock or 0.0) + quantity
            self.session.add(stock)
            self.session.flush()

            now = datetime.utcnow()
            for row in self.session.exec(
                select(WarehouseStock).where(WarehouseStock.product_id == product_id)
            ).all():
                row.average_cost = new_avg
                row.updated_at = now
                self.session.add(row)

            product.average_cost = new_avg
            product.last_purchase_price = unit_cost
            product.updated_at = now
            self.session.add(product)

            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        self.session.refresh(batch)
        logger.info(
            f"Received {quantity} × {product.name} @ {unit_cost} into {location} "
            f"(batch {batch.batch_number}); avg cost {avg_before} → {new_avg}"
        )
        return ReceiptResult(
            product_id=product_id,
            batch_number=batch.batch_number,
            quantity_before=qty_before,
            quantity_after=qty_before + quantity,
            average_cost_before=avg_before,
            average_cost_after=new_avg,
            unit_cost=unit_cost,
        )

    def list_batches(self, product_id: Optional[int] = None, limit: int = 100) -> list[StockBatch]:
        stmt = select(StockBatch)
        if product_id is not None:
            stmt = stmt.where(StockBatch.product_id == product_id)
        stmt = stmt.order_by(col(StockBatch.received_at).desc()).limit(limit)
        return list(self.session.exec(stmt).all())

    def inventory_valuation(self) -> InventoryValuation:
        """Σ current_stock × average_cost over locations holding stock."""
        value, qty, products = self.session.exec(
            select(
                func.sum(WarehouseStock.current_stock * WarehouseStock.average_cost),
                func.sum(WarehouseStock.current_stock),
                func.count(func.distinct(WarehouseStock.product_id)),
            ).where(WarehouseStock.current_stock > 0)
        ).one()
        return InventoryValuation(
            total_inventory_value=round(float(value or 0.0), 2),
            total_quantity=float(qty or 0.0),
            total_products=int(products or 0),
        )
