"""Shared configuration for the bonding curve client."""
from __future__ import annotations

import enum
import os
from dataclasses import dataclass
from decimal import Decimal
from typing import List

from solana.rpc.commitment import Commitment, Confirmed
from solders.pubkey import Pubkey

from .addresses import parse_pubkey
from .errors import InvalidInput

PROGRAM_ID = os.getenv("BONDING_CURVE_PROGRAM_ID", "2RvPPes11jGU8CDZDPLZdKRGZEtWye5ZTJ4PZCKJuUoZ")
PLATFORM_FEE_WALLET = os.getenv("BONDING_CURVE_FEE_WALLET", "EkZvFSSYzABfn32sydHGWbaMZWhm5JgjYcDhdmUWeGV6")
PLATFORM_FEE_PERCENT = os.getenv("BONDING_CURVE_FEE_PERCENT", "1")
CURVE_MODEL = os.getenv("BONDING_CURVE_MODEL", "linear")
SELL_FEE_MODE = os.getenv("BONDING_CURVE_SELL_FEE_MODE", "atomic")

DEFAULT_RPC_ENDPOINTS = [
    os.getenv("SOLANA_RPC_URL"),
    "https://api.devnet.solana.com",
]

# Filter out None / empty values while preserving order
RPC_ENDPOINTS: List[str] = [endpoint for endpoint in DEFAULT_RPC_ENDPOINTS if endpoint]

LAMPORTS_PER_SOL = 1_000_000_000
TOKEN_SCALE = 1_000_000_000
# Quadratic pools count sold supply in millions of whole tokens
QUADRATIC_UNIT_DIVISOR = 1_000_000
PROPORTION = 1280

# Price = LINEAR_SLOPE * tokens_sold + LINEAR_INTERCEPT, in SOL per whole token
LINEAR_SLOPE = Decimal("0.000001")
LINEAR_INTERCEPT = Decimal("0.00001")

CONFIRM_SLEEP_SECONDS = float(os.getenv("BONDING_CURVE_CONFIRM_SLEEP", "0.5"))


class CurveKind(str, enum.Enum):
    QUADRATIC = "quadratic"
    LINEAR = "linear"


class SellFeeMode(str, enum.Enum):
    """How the platform fee on a sell is sized and settled."""

    ATOMIC = "atomic"
    REALIZED = "realized"


def parse_enum(kind: type, value) -> enum.Enum:
    if isinstance(value, kind):
        return value
    try:
        return kind(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(member.value for member in kind)
        raise InvalidInput(f"Unknown {kind.__name__} {value!r}; expected one of {choices}") from None


@dataclass(frozen=True)
class EngineConfig:
    """Every deployment-specific value the engine reads.

    The same engine can target another deployment of the on-ledger program by
    building a different config; nothing downstream reads module globals.
    """

    program_id: Pubkey
    fee_recipient: Pubkey
    fee_percent: int = 1
    curve: CurveKind = CurveKind.LINEAR
    proportion: int = PROPORTION
    linear_slope: Decimal = LINEAR_SLOPE
    linear_intercept: Decimal = LINEAR_INTERCEPT
    sell_fee_mode: SellFeeMode = SellFeeMode.ATOMIC
    commitment: Commitment = Confirmed
    confirm_sleep_seconds: float = CONFIRM_SLEEP_SECONDS

    def __post_init__(self) -> None:
        if isinstance(self.fee_percent, bool) or not isinstance(self.fee_percent, int):
            raise InvalidInput(f"Fee percent must be an integer, got {self.fee_percent!r}")
        if not 0 <= self.fee_percent <= 100:
            raise InvalidInput(f"Fee percent must be within 0..100, got {self.fee_percent}")
        if self.proportion <= 0:
            raise InvalidInput(f"Proportion must be positive, got {self.proportion}")
        if self.linear_slope <= 0 or self.linear_intercept < 0:
            raise InvalidInput("Linear curve needs a positive slope and a non-negative intercept")
        object.__setattr__(self, "curve", parse_enum(CurveKind, self.curve))
        object.__setattr__(self, "sell_fee_mode", parse_enum(SellFeeMode, self.sell_fee_mode))

    @classmethod
    def from_env(cls, **overrides) -> "EngineConfig":
        try:
            fee_percent = int(PLATFORM_FEE_PERCENT)
        except ValueError:
            raise InvalidInput(f"BONDING_CURVE_FEE_PERCENT is not an integer: {PLATFORM_FEE_PERCENT!r}") from None

        values = {
            "program_id": parse_pubkey(PROGRAM_ID),
            "fee_recipient": parse_pubkey(PLATFORM_FEE_WALLET),
            "fee_percent": fee_percent,
            "curve": CURVE_MODEL,
            "sell_fee_mode": SELL_FEE_MODE,
        }
        values.update(overrides)
        return cls(**values)
