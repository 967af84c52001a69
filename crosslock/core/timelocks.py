"""
crosslock/core/timelocks.py

Timelocks: one deployment timestamp plus seven stage deltas.

Packed layout (256-bit big-endian register, locked):

    bits 224..255   deployed_at
    bits 192..223   (unused, zero)
    bits  32*i ..   delta for Stage(i), i = 0..6

    get(stage) = deployed_at + delta[stage]    checked u32 add

The caller composes the deltas so that stages are non-decreasing per side.
"""

from dataclasses import dataclass, fields, replace
from enum import IntEnum

from crosslock.core.arith import U32_MAX, check_width, checked_add
from crosslock.core.exceptions import ArithmeticOverflow

DEPLOYED_AT_OFFSET = 224
STAGE_BIT_SIZE     = 32


class Stage(IntEnum):
    SRC_WITHDRAWAL          = 0
    SRC_PUBLIC_WITHDRAWAL   = 1
    SRC_CANCELLATION        = 2
    SRC_PUBLIC_CANCELLATION = 3
    DST_WITHDRAWAL          = 4
    DST_PUBLIC_WITHDRAWAL   = 5
    DST_CANCELLATION        = 6


@dataclass(frozen=True)
class Timelocks:
    """
    Explicit eight-field form of the packed register.

    Field names follow Stage order; to_int()/from_int() convert to and from
    the packed 256-bit value, to_bytes() gives the 32-byte wire form hashed
    into order_hash.
    """

    src_withdrawal:          int = 0
    src_public_withdrawal:   int = 0
    src_cancellation:        int = 0
    src_public_cancellation: int = 0
    dst_withdrawal:          int = 0
    dst_public_withdrawal:   int = 0
    dst_cancellation:        int = 0
    deployed_at:             int = 0

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, int) or not 0 <= value <= U32_MAX:
                raise ValueError(
                    f"{f.name} must be an unsigned 32-bit int, got {value!r}"
                )

    # ── Packing ───────────────────────────────────────────────

    def delta(self, stage: Stage) -> int:
        return getattr(self, Stage(stage).name.lower())

    def to_int(self) -> int:
        packed = self.deployed_at << DEPLOYED_AT_OFFSET
        for stage in Stage:
            packed |= self.delta(stage) << (stage * STAGE_BIT_SIZE)
        return packed

    @classmethod
    def from_int(cls, packed: int) -> "Timelocks":
        check_width(packed, 256)
        values = {
            stage.name.lower(): (packed >> (stage * STAGE_BIT_SIZE)) & U32_MAX
            for stage in Stage
        }
        return cls(deployed_at=(packed >> DEPLOYED_AT_OFFSET) & U32_MAX, **values)

    def to_bytes(self) -> bytes:
        return self.to_int().to_bytes(32, "big")

    @classmethod
    def from_bytes(cls, data: bytes) -> "Timelocks":
        if len(data) != 32:
            raise ValueError(f"Timelocks must be 32 bytes, got {len(data)}")
        return cls.from_int(int.from_bytes(data, "big"))

    # ── Stage arithmetic ──────────────────────────────────────

    def set_deployed_at(self, value: int) -> "Timelocks":
        """Return a copy stamped with a new deployment timestamp."""
        return replace(self, deployed_at=value)

    def get(self, stage: Stage) -> int:
        """Absolute start of `stage`. Overflow past u32 is fatal."""
        try:
            return checked_add(self.deployed_at, self.delta(stage), bits=32)
        except ArithmeticOverflow as exc:
            raise ArithmeticOverflow(
                details={"stage": Stage(stage).name, "deployed_at": self.deployed_at}
            ) from exc

    def rescue_start(self, rescue_delay: int) -> int:
        return checked_add(self.deployed_at, rescue_delay, bits=32)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}
