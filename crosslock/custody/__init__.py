"""
CrossLock collaborators: asset custody, storage rent and the resolver
allow-list. All in-process; the settlement engine snapshots custody state
around each transition.
"""

from crosslock.custody.allowlist import AllowList
from crosslock.custody.custody import AssetCustody, HoldingRecord, check_holding
from crosslock.custody.rent import StorageRent

__all__ = ["AllowList", "AssetCustody", "HoldingRecord", "StorageRent", "check_holding"]
