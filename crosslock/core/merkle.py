"""
crosslock/core/merkle.py

Merkle partial fills.

A multi-fill order commits to parts_amount + 1 secrets. Leaf i is

    H(be64(i) || hashed_secret_i)

and each level combines H(min(l, r) || max(l, r)); an unpaired node combines
with 32 zero bytes. Sorted-pair hashing makes a proof independent of
left/right placement, so a proof is just the sibling list.

The order's hashlock is the root with parts_amount packed in its top 16 bits.
"""

from dataclasses import dataclass
from typing import List

from crosslock.core.arith import U16_MAX
from crosslock.core.hashing import HASH_BYTES, ZERO_HASH, be64, hashv

PARTS_AMOUNT_BITS  = 16
PARTS_AMOUNT_SHIFT = 256 - PARTS_AMOUNT_BITS
_ROOT_MASK         = (1 << PARTS_AMOUNT_SHIFT) - 1


@dataclass(frozen=True)
class MerkleProof:
    proof:         List[bytes]
    index:         int
    hashed_secret: bytes

    def __post_init__(self):
        object.__setattr__(self, "proof", [bytes(node) for node in self.proof])
        for node in self.proof:
            if len(node) != HASH_BYTES:
                raise ValueError(f"proof nodes must be {HASH_BYTES} bytes, got {len(node)}")
        if len(self.hashed_secret) != HASH_BYTES:
            raise ValueError(
                f"hashed_secret must be {HASH_BYTES} bytes, got {len(self.hashed_secret)}"
            )
        if not isinstance(self.index, int) or self.index < 0:
            raise ValueError(f"index must be a non-negative int, got {self.index!r}")


# ── Hashing ───────────────────────────────────────────────────

def hash_leaf(index: int, hashed_secret: bytes) -> bytes:
    return hashv(be64(index), hashed_secret)


def hash_pair(left: bytes, right: bytes) -> bytes:
    if left < right:
        return hashv(left, right)
    return hashv(right, left)


def hash_level(nodes: List[bytes]) -> List[bytes]:
    level = [hash_pair(nodes[i], nodes[i + 1]) for i in range(0, len(nodes) - 1, 2)]
    if len(nodes) % 2 == 1:
        level.append(hash_pair(nodes[-1], ZERO_HASH))
    return level


def leaves_for(hashed_secrets: List[bytes]) -> List[bytes]:
    return [hash_leaf(i, hs) for i, hs in enumerate(hashed_secrets)]


# ── Tree builders ─────────────────────────────────────────────

def get_root(leaves: List[bytes]) -> bytes:
    if len(leaves) < 2:
        raise ValueError("won't build a root for fewer than two leaves")
    level = list(leaves)
    while len(level) > 1:
        level = hash_level(level)
    return level[0]


def get_proof(leaves: List[bytes], index: int) -> List[bytes]:
    if not 0 <= index < len(leaves):
        raise IndexError(f"leaf index {index} out of range for {len(leaves)} leaves")
    proof = []
    level = list(leaves)
    node  = index
    while len(level) > 1:
        if node & 1:
            proof.append(level[node - 1])
        elif node + 1 == len(level):
            proof.append(ZERO_HASH)
        else:
            proof.append(level[node + 1])
        node //= 2
        level = hash_level(level)
    return proof


def process_proof(proof: MerkleProof) -> bytes:
    """Recompute the root by repeated sorted-pair combine from the leaf."""
    computed = hash_leaf(proof.index, proof.hashed_secret)
    for sibling in proof.proof:
        computed = hash_pair(sibling, computed)
    return computed


def verify(proof: MerkleProof, root: bytes) -> bool:
    """Equality with the recomputed root is the only acceptance test."""
    return process_proof(proof) == root


def verify_hashlock(proof: MerkleProof, hashlock: bytes) -> bool:
    """
    Verify against a multi-fill hashlock. The top 16 bits carry parts_amount,
    so both sides are compared with those bits cleared.
    """
    return strip_parts(process_proof(proof)) == strip_parts(hashlock)


# ── Hashlock packing ──────────────────────────────────────────

def parts_amount(hashlock: bytes) -> int:
    return int.from_bytes(hashlock, "big") >> PARTS_AMOUNT_SHIFT


def strip_parts(hashlock: bytes) -> bytes:
    """The Merkle root with the parts_amount bits cleared."""
    return (int.from_bytes(hashlock, "big") & _ROOT_MASK).to_bytes(HASH_BYTES, "big")


def encode_root(root: bytes, parts: int) -> bytes:
    if not 0 <= parts <= U16_MAX:
        raise ValueError(f"parts_amount must fit in 16 bits, got {parts!r}")
    value = (int.from_bytes(root, "big") & _ROOT_MASK) | (parts << PARTS_AMOUNT_SHIFT)
    return value.to_bytes(HASH_BYTES, "big")


# ── Index law ─────────────────────────────────────────────────

def is_valid_partial_fill(
    making_amount:           int,
    remaining_making_amount: int,
    order_making_amount:     int,
    parts_amount:            int,
    validated_index:         int,
) -> bool:
    """
    Admission rule for one slice of a multi-fill order.

    The order is cut into parts_amount equal secret-indexed slices. A fill
    that exhausts the order must present index calculated + 1; any other fill
    must not land on the same index as the previous fill and must present
    exactly the calculated index.
    """
    calculated_index = (
        (order_making_amount - remaining_making_amount + making_amount - 1)
        * parts_amount
    ) // order_making_amount

    if remaining_making_amount == making_amount:
        return calculated_index + 1 == validated_index

    if order_making_amount != remaining_making_amount:
        prev_calculated_index = (
            (order_making_amount - remaining_making_amount - 1) * parts_amount
        ) // order_making_amount
        if calculated_index == prev_calculated_index:
            return False

    return calculated_index == validated_index
