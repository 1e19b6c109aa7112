from .company import Company, DocumentSequence
from .customers import Customer
from .inventory import Product, PurchaseLot, LOT_IN_STOCK, LOT_OUT_OF_STOCK
from .invoices import Invoice, InvoiceItem, InvoiceAttachment, Payment, LotDraw
from .refunds import Refund, RefundItem
from .estimates import Estimate, EstimateItem, ESTIMATE_PENDING, ESTIMATE_ACCEPTED, ESTIMATE_DECLINED, ESTIMATE_CONVERTED

__all__ = [
    'Company', 'DocumentSequence',
    'Customer',
    'Product', 'PurchaseLot', 'LOT_IN_STOCK', 'LOT_OUT_OF_STOCK',
    'Invoice', 'InvoiceItem', 'InvoiceAttachment', 'Payment', 'LotDraw',
    'Refund', 'RefundItem',
    'Estimate', 'EstimateItem',
    'ESTIMATE_PENDING', 'ESTIMATE_ACCEPTED', 'ESTIMATE_DECLINED', 'ESTIMATE_CONVERTED',
]
