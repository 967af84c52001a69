"""
crosslock/core/auction.py

Dutch-auction pricing.

The same piecewise-linear curve serves two purposes:
    calculate_rate_bump: inflates the destination-amount quote early in an
                         order's life, decaying to par at start + duration
    calculate_premium  : grows the resolver reward for cancelling an expired
                         order from 0 up to max_cancellation_premium

Rate bumps are expressed against BASE_1E5 (100_000 == 100%).
"""

import logging
from dataclasses import dataclass, field
from typing import List

from crosslock.core.arith import U16_MAX, U24_MAX, U32_MAX, mul_div_ceil
from crosslock.core.hashing import be16, be24, be32, hashv

logger = logging.getLogger(__name__)

BASE_1E5 = 100_000


@dataclass(frozen=True)
class PointAndTimeDelta:
    rate_bump:  int
    time_delta: int

    def __post_init__(self):
        if not isinstance(self.rate_bump, int) or not 0 <= self.rate_bump <= U24_MAX:
            raise ValueError(f"rate_bump must fit in 24 bits, got {self.rate_bump!r}")
        if not isinstance(self.time_delta, int) or not 0 <= self.time_delta <= U16_MAX:
            raise ValueError(f"time_delta must fit in 16 bits, got {self.time_delta!r}")


@dataclass(frozen=True)
class AuctionData:
    """
    Auction curve supplied by the taker at fill time.

    The order only stores hash(); create_escrow rejects data whose hash does
    not match. Binary form (locked):

        be32(start_time) || be32(duration) || be24(initial_rate_bump)
        || be32(len(points)) || points as be24(rate_bump) || be16(time_delta)
    """

    start_time:             int
    duration:               int
    initial_rate_bump:      int
    points_and_time_deltas: List[PointAndTimeDelta] = field(default_factory=list)

    def __post_init__(self):
        if not 0 <= self.start_time <= U32_MAX:
            raise ValueError(f"start_time must fit in 32 bits, got {self.start_time!r}")
        if not 0 <= self.duration <= U32_MAX:
            raise ValueError(f"duration must fit in 32 bits, got {self.duration!r}")
        if not 0 <= self.initial_rate_bump <= U24_MAX:
            raise ValueError(
                f"initial_rate_bump must fit in 24 bits, got {self.initial_rate_bump!r}"
            )
        object.__setattr__(self, "points_and_time_deltas", list(self.points_and_time_deltas))

    def to_bytes(self) -> bytes:
        out = [
            be32(self.start_time),
            be32(self.duration),
            be24(self.initial_rate_bump),
            be32(len(self.points_and_time_deltas)),
        ]
        for point in self.points_and_time_deltas:
            out.append(be24(point.rate_bump))
            out.append(be16(point.time_delta))
        return b"".join(out)

    def hash(self) -> bytes:
        return hashv(self.to_bytes())

    def to_dict(self) -> dict:
        return {
            "start_time": self.start_time,
            "duration": self.duration,
            "initial_rate_bump": self.initial_rate_bump,
            "points_and_time_deltas": [
                {"rate_bump": p.rate_bump, "time_delta": p.time_delta}
                for p in self.points_and_time_deltas
            ],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AuctionData":
        return cls(
            start_time=data["start_time"],
            duration=data["duration"],
            initial_rate_bump=data["initial_rate_bump"],
            points_and_time_deltas=[
                PointAndTimeDelta(p["rate_bump"], p["time_delta"])
                for p in data.get("points_and_time_deltas", [])
            ],
        )


def calculate_rate_bump(timestamp: int, data: AuctionData) -> int:
    """
    Rate bump in effect at `timestamp`.

    Between two checkpoints (t0, bump0) and (t1, bump1):
        ((t - t0) * bump1 + (t1 - t) * bump0) // (t1 - t0)
    After the last checkpoint the bump decays linearly to 0 at the end.
    """
    if timestamp <= data.start_time:
        return data.initial_rate_bump
    auction_finish_time = data.start_time + data.duration
    if timestamp >= auction_finish_time:
        return 0

    current_rate_bump  = data.initial_rate_bump
    current_point_time = data.start_time

    for point in data.points_and_time_deltas:
        next_rate_bump  = point.rate_bump
        next_point_time = current_point_time + point.time_delta

        if timestamp <= next_point_time:
            # current_point_time < timestamp <= next_point_time, so time_delta > 0
            return (
                (timestamp - current_point_time) * next_rate_bump
                + (next_point_time - timestamp) * current_rate_bump
            ) // point.time_delta

        current_rate_bump  = next_rate_bump
        current_point_time = next_point_time

    return (
        current_rate_bump * (auction_finish_time - timestamp)
        // (auction_finish_time - current_point_time)
    )


def get_dst_amount(dst_amount: int, data: AuctionData, timestamp: int) -> int:
    """
    Destination amount owed at `timestamp`, rounded up.

    ceil(dst_amount * (BASE_1E5 + rate_bump) / BASE_1E5) in 256-bit arithmetic.
    """
    rate_bump = calculate_rate_bump(timestamp, data)
    result = mul_div_ceil(dst_amount, BASE_1E5 + rate_bump, BASE_1E5, bits=256)
    logger.debug("dst amount %d -> %d (rate_bump=%d)", dst_amount, result, rate_bump)
    return result


def calculate_premium(
    timestamp:                int,
    auction_start_time:       int,
    auction_duration:         int,
    max_cancellation_premium: int,
) -> int:
    """Linear ramp from 0 at auction_start_time to the max at start + duration."""
    if timestamp <= auction_start_time:
        return 0

    time_elapsed = timestamp - auction_start_time
    if time_elapsed >= auction_duration:
        return max_cancellation_premium

    return (time_elapsed * max_cancellation_premium) // auction_duration
