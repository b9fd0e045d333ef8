"""
Shared enums and constants used across the application.
"""

from enum import Enum


class PlatformName(str, Enum):
    MERCADOLIBRE = "ml"
    TIENDANUBE = "tn"


class MovementReason(str, Enum):
    """Why a stock ledger entry was written"""
    MANUAL_UPDATE = "manual_update"
    SALE_ML = "sale_ml"
    SALE_TN = "sale_tn"
    INITIAL_SYNC = "initial_sync"
