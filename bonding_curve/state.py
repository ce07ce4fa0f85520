"""Account layouts for pools and the global curve configuration."""
from __future__ import annotations

from dataclasses import dataclass

from construct import Bytes, Float64l, Int8ul, Int64ul, Struct
from solders.pubkey import Pubkey

from .errors import CorruptAccount

POOL_LAYOUT = Struct(
    "header" / Bytes(8),
    "creator" / Bytes(32),
    "token" / Bytes(32),
    "total_supply" / Int64ul,
    "reserve_token" / Int64ul,
    "reserve_sol" / Int64ul,
    "bump" / Int8ul,
)
POOL_SIZE = POOL_LAYOUT.sizeof()

CURVE_CONFIGURATION_LAYOUT = Struct(
    "header" / Bytes(8),
    "fees" / Float64l,
)
CURVE_CONFIGURATION_SIZE = CURVE_CONFIGURATION_LAYOUT.sizeof()


@dataclass(frozen=True)
class Pool:
    """Point-in-time snapshot of one token's curve state."""

    creator: Pubkey
    token: Pubkey
    total_supply: int
    reserve_token: int
    reserve_sol: int
    bump: int

    @property
    def tokens_sold(self) -> int:
        return max(self.total_supply - self.reserve_token, 0)


@dataclass(frozen=True)
class CurveConfiguration:
    fees: float


def decode_pool(raw: bytes) -> Pool:
    if len(raw) < POOL_SIZE:
        raise CorruptAccount(f"Pool account needs {POOL_SIZE} bytes, got {len(raw)}")
    parsed = POOL_LAYOUT.parse(bytes(raw[:POOL_SIZE]))
    return Pool(
        creator=Pubkey.from_bytes(parsed.creator),
        token=Pubkey.from_bytes(parsed.token),
        total_supply=parsed.total_supply,
        reserve_token=parsed.reserve_token,
        reserve_sol=parsed.reserve_sol,
        bump=parsed.bump,
    )


def decode_curve_configuration(raw: bytes) -> CurveConfiguration:
    if len(raw) < CURVE_CONFIGURATION_SIZE:
        raise CorruptAccount(
            f"Curve configuration needs {CURVE_CONFIGURATION_SIZE} bytes, got {len(raw)}"
        )
    parsed = CURVE_CONFIGURATION_LAYOUT.parse(bytes(raw[:CURVE_CONFIGURATION_SIZE]))
    return CurveConfiguration(fees=parsed.fees)


def sale_progress_bps(pool: Pool) -> int:
    """Share of the total supply already sold, in basis points."""
    if pool.total_supply == 0:
        return 0
    return min(pool.tokens_sold * 10_000 // pool.total_supply, 10_000)
