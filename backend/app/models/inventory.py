"""SQLModel models for products, warehouse stock and received batches."""
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """Product master carrying the running weighted-average cost."""

    __tablename__ = "products"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    product_code: Optional[str] = Field(default=None, index=True)
    unit: str = Field(default="Nos")
    hsn_code: Optional[str] = None
    gst_rate: Optional[float] = None
    average_cost: float = Field(default=0.0)
    last_purchase_price: Optional[float] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class WarehouseStock(SQLModel, table=True):
    """On-hand quantity of one product at one location."""

    __tablename__ = "inventory_warehouse_stock"

    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="products.id", index=True)
    location: str = Field(default="Main", index=True)
    current_stock: float = Field(default=0.0)
    average_cost: float = Field(default=0.0)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class StockBatch(SQLModel, table=True):
    """One stock receipt. Rows are written once and never updated."""

    __tablename__ = "inventory_batches"

    id: Optional[int] = Field(default=None, primary_key=True)
    batch_number: str = Field(index=True, unique=True)  # P{product_id}-{YYYYMMDD}-{seq}
    product_id: int = Field(foreign_key="products.id", index=True)
    location: str = Field(default="Main")
    quantity: float
    unit_cost: float
    received_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    received_by: Optional[int] = None
