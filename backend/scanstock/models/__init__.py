from .inventory import (
    Product,
    InventoryLog,
    OutboundRecord,
    AdjustmentReason,
    StockScope,
    ADJUSTMENT_REASONS,
    STOCK_SCOPES,
)
from .orders import Order, OrderLine, OrderStatus, ORDER_STATUSES

__all__ = [
    'Product', 'InventoryLog', 'OutboundRecord',
    'AdjustmentReason', 'StockScope', 'ADJUSTMENT_REASONS', 'STOCK_SCOPES',
    'Order', 'OrderLine', 'OrderStatus', 'ORDER_STATUSES',
]
