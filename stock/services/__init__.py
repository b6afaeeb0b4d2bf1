"""
Stock Services - recipe costing, purchasing and stock lot business logic

Usage:
    from stock.services import RecipeService, PurchaseOrderService

    # Create a recipe; total_cost is rolled up in the same transaction
    result = RecipeService.create(name="Carbonara", ingredients=[...])

    # Create a purchase order; number and totals are assigned atomically
    PurchaseOrderService.create(supplier_id=1, order_date=date.today(), items=[...])
"""

# Base utilities
from stock.services.base_service import (
    ServiceError,
    ValidationError,
    NotFoundError,
    ConflictError,
    InsufficientStockError,
    PersistenceError,
    success_response,
    paginate_queryset,
    to_decimal,
    to_int,
    to_date,
    round_decimal,
    round_money,
    BaseService,
)
from .unit_of_work import unit_of_work, atomic_operation

# Calculators
from .recipe_costing import line_cost, rollup_cost
from .order_totals import TAX_RATE, OrderTotals, calculate_order_totals, line_total
from .stock_status import (
    StockStatus,
    CRITICAL_FRACTION,
    DEFAULT_EXPIRY_WINDOW_DAYS,
    classify_stock,
    classify_stock_lot,
    days_to_expiry,
)

# Purchasing
from .purchase_lifecycle import (
    ALLOWED_TRANSITIONS,
    check_transition,
    check_deletable,
    check_items_editable,
    apply_transition,
)
from .sequence_service import SequenceService, format_order_number, parse_sequence
from .purchase_service import PurchaseOrderService, PurchaseOrderItemService

# Recipes
from .recipe_service import RecipeService, RecipeIngredientService

# Stock
from .stock_lot_service import StockLotService

# Maintenance
from .consistency_service import ConsistencyService


__all__ = [
    # Errors
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "InsufficientStockError",
    "PersistenceError",
    # Utilities
    "success_response",
    "paginate_queryset",
    "to_decimal",
    "to_int",
    "to_date",
    "round_decimal",
    "round_money",
    "BaseService",
    "unit_of_work",
    "atomic_operation",
    # Calculators
    "line_cost",
    "rollup_cost",
    "TAX_RATE",
    "OrderTotals",
    "calculate_order_totals",
    "line_total",
    "StockStatus",
    "CRITICAL_FRACTION",
    "DEFAULT_EXPIRY_WINDOW_DAYS",
    "classify_stock",
    "classify_stock_lot",
    "days_to_expiry",
    # Purchasing
    "ALLOWED_TRANSITIONS",
    "check_transition",
    "check_deletable",
    "check_items_editable",
    "apply_transition",
    "SequenceService",
    "format_order_number",
    "parse_sequence",
    "PurchaseOrderService",
    "PurchaseOrderItemService",
    # Recipes
    "RecipeService",
    "RecipeIngredientService",
    # Stock
    "StockLotService",
    # Maintenance
    "ConsistencyService",
]
