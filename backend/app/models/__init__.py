from app.models.case import Case, CaseStateTransition, DocumentSequence, SalesEnquiry
from app.models.inventory import Product, StockBatch, WarehouseStock
from app.models.tax import TaxState

__all__ = [
    "Case",
    "CaseStateTransition",
    "DocumentSequence",
    "SalesEnquiry",
    "Product",
    "StockBatch",
    "WarehouseStock",
    "TaxState",
]
