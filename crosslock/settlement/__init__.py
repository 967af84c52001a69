"""
CrossLock Settlement

Order and escrow lifecycles behind one serialised engine.

Critical Invariants:
- One clock read per transition
- A rejected transition leaves no trace in the store, custody or journal
- remaining_amount is the only state shared across fills
- Escrow funds leave only through withdraw, cancel or rescue
"""

from crosslock.settlement.engine import SettlementEngine
from crosslock.settlement.escrows import EscrowManager
from crosslock.settlement.orders import OrderManager
from crosslock.settlement.rescue import RescueManager
from crosslock.settlement.store import EntityStore

__all__ = [
    "SettlementEngine",
    "EntityStore",
    "EscrowManager",
    "OrderManager",
    "RescueManager",
]
