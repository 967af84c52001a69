"""
crosslock/custody/rent.py

Storage-deposit accounting.

Every record the protocol opens (orders, escrows, holding records) is funded
with a deposit large enough to be exempt from rent:

    minimum_balance(size) = (overhead + size) * lamports_per_byte_year
                            * exemption_threshold

The deposit is reclaimed when the record closes.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class StorageRent:
    lamports_per_byte_year:   int = 3480
    exemption_threshold:      int = 2
    account_storage_overhead: int = 128

    def minimum_balance(self, size: int) -> int:
        if size < 0:
            raise ValueError(f"record size must be non-negative, got {size}")
        return (
            (self.account_storage_overhead + size)
            * self.lamports_per_byte_year
            * self.exemption_threshold
        )
