"""
crosslock/settlement/store.py

Entity store: derived address → Order / Escrow.

Rescue anchors (address → rescue_start) outlive the entity they were taken
from, so funds sent to a closed address can still be rescued.
"""

import copy
from typing import Dict

from crosslock.core.exceptions import InvalidAccount
from crosslock.core.models import Escrow, Order


class EntityStore:

    def __init__(self) -> None:
        self.orders:         Dict[str, Order]  = {}
        self.escrows:        Dict[str, Escrow] = {}
        self.rescue_anchors: Dict[str, int]    = {}

    # ── Orders ────────────────────────────────────────────────

    def get_order(self, address: str) -> Order:
        order = self.orders.get(address)
        if order is None:
            raise InvalidAccount("Order does not exist", {"address": address})
        return order

    def put_order(self, order: Order, rescue_start: int) -> None:
        self.orders[order.address] = order
        self.rescue_anchors[order.address] = rescue_start

    def remove_order(self, address: str) -> None:
        self.orders.pop(address, None)

    # ── Escrows ───────────────────────────────────────────────

    def get_escrow(self, address: str) -> Escrow:
        escrow = self.escrows.get(address)
        if escrow is None:
            raise InvalidAccount("Escrow does not exist", {"address": address})
        return escrow

    def put_escrow(self, escrow: Escrow) -> None:
        self.escrows[escrow.address] = escrow
        self.rescue_anchors[escrow.address] = escrow.rescue_start

    def remove_escrow(self, address: str) -> None:
        self.escrows.pop(address, None)

    def is_used(self, address: str) -> bool:
        return address in self.orders or address in self.escrows

    # ── Snapshots ─────────────────────────────────────────────

    def snapshot(self) -> tuple:
        # Orders are mutable (remaining_amount); escrows are frozen.
        return (
            copy.deepcopy(self.orders),
            dict(self.escrows),
            dict(self.rescue_anchors),
        )

    def restore(self, state: tuple) -> None:
        orders, escrows, anchors = state
        self.orders         = copy.deepcopy(orders)
        self.escrows        = dict(escrows)
        self.rescue_anchors = dict(anchors)
