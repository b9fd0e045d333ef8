from stockbridge.models.sku import Sku
from stockbridge.models.stock_ledger import StockLedgerEntry
from stockbridge.models.ml_item import MlItem
from stockbridge.models.tn_item import TnItem

__all__ = ["Sku", "StockLedgerEntry", "MlItem", "TnItem"]
