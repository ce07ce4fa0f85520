"""Bonding curve pricing.

Two incompatible curve generations exist on the ledger, so the curve is an
explicit variant chosen once from the engine configuration:

* ``QuadraticCurve``: cost of moving the sold supply from ``s`` to ``s'`` is
  ``(s'^2 - s^2) / proportion`` SOL, with ``s`` counted in millions of whole
  tokens.
* ``LinearCurve``: price at ``x`` whole tokens sold is ``slope * x + intercept``
  SOL, and cost is the integral of that line.

Amounts in and out are integers in base units (lamports, raw token units).
All intermediate arithmetic runs in a 50-digit decimal context because raw
reserves routinely exceed what a float mantissa can hold exactly; results are
rounded half away from zero, never truncated.
"""
from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Context, Decimal, localcontext
from typing import ClassVar

from .config import (
    LAMPORTS_PER_SOL,
    LINEAR_INTERCEPT,
    LINEAR_SLOPE,
    PROPORTION,
    QUADRATIC_UNIT_DIVISOR,
    TOKEN_SCALE,
    CurveKind,
    EngineConfig,
)
from .errors import InvalidInput
from .state import Pool

logger = logging.getLogger(__name__)

PRECISION = Context(prec=50, rounding=ROUND_HALF_UP)


def _round(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))


def _check_amount(amount: int, name: str) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidInput(f"{name} must be an integer amount of base units, got {amount!r}")
    if amount < 0:
        raise InvalidInput(f"{name} must not be negative, got {amount}")


class BondingCurve(abc.ABC):
    kind: ClassVar[CurveKind]
    # Raw token units per curve unit
    unit: ClassVar[int]

    def to_units(self, raw: int) -> Decimal:
        return Decimal(raw) / Decimal(self.unit)

    def clamp_sell(self, pool: Pool, token_amount: int) -> int:
        """Selling more than was ever sold floors at the sold supply."""
        _check_amount(token_amount, "Token amount")
        sold = pool.tokens_sold
        if token_amount > sold:
            logger.debug("Sell of %d exceeds sold supply %d; clamping", token_amount, sold)
            return sold
        return token_amount

    @abc.abstractmethod
    def buy_price(self, pool: Pool, token_amount: int) -> int:
        """Lamports needed to buy ``token_amount`` raw tokens from ``pool``."""

    @abc.abstractmethod
    def sell_return(self, pool: Pool, token_amount: int) -> int:
        """Lamports returned for selling ``token_amount`` raw tokens to ``pool``."""

    @abc.abstractmethod
    def tokens_for_sol(self, pool: Pool, lamports: int) -> int:
        """Raw tokens obtainable for spending ``lamports`` on ``pool``."""

    @abc.abstractmethod
    def spot_price(self, pool: Pool) -> int:
        """Marginal price in lamports per curve unit at the current sold supply."""


@dataclass(frozen=True)
class QuadraticCurve(BondingCurve):
    proportion: int = PROPORTION

    kind: ClassVar[CurveKind] = CurveKind.QUADRATIC
    unit: ClassVar[int] = TOKEN_SCALE * QUADRATIC_UNIT_DIVISOR

    def buy_price(self, pool: Pool, token_amount: int) -> int:
        _check_amount(token_amount, "Token amount")
        with localcontext(PRECISION):
            sold = self.to_units(pool.tokens_sold)
            after = sold + self.to_units(token_amount)
            cost = (after * after - sold * sold) / self.proportion * LAMPORTS_PER_SOL
        return _round(cost)

    def sell_return(self, pool: Pool, token_amount: int) -> int:
        _check_amount(token_amount, "Token amount")
        token_amount = self.clamp_sell(pool, token_amount)
        with localcontext(PRECISION):
            sold = self.to_units(pool.tokens_sold)
            after = sold - self.to_units(token_amount)
            payout = (sold * sold - after * after) / self.proportion * LAMPORTS_PER_SOL
        return _round(payout)

    def tokens_for_sol(self, pool: Pool, lamports: int) -> int:
        _check_amount(lamports, "Lamports")
        with localcontext(PRECISION):
            sold = self.to_units(pool.tokens_sold)
            spend = Decimal(lamports) / LAMPORTS_PER_SOL
            root = (self.proportion * spend + sold * sold).sqrt()
            tokens = (root - sold) * self.unit
        return max(_round(tokens), 0)

    def spot_price(self, pool: Pool) -> int:
        with localcontext(PRECISION):
            sold = self.to_units(pool.tokens_sold)
            price = 2 * sold / self.proportion * LAMPORTS_PER_SOL
        return _round(price)


@dataclass(frozen=True)
class LinearCurve(BondingCurve):
    slope: Decimal = LINEAR_SLOPE
    intercept: Decimal = LINEAR_INTERCEPT

    kind: ClassVar[CurveKind] = CurveKind.LINEAR
    unit: ClassVar[int] = TOKEN_SCALE

    def __post_init__(self) -> None:
        if Decimal(self.slope) <= 0 or Decimal(self.intercept) < 0:
            raise InvalidInput("Linear curve needs a positive slope and a non-negative intercept")

    def _integral(self, start: Decimal, width: Decimal) -> Decimal:
        # Average price over [start, start + width] times the width
        return (Decimal(self.slope) * (start + width / 2) + Decimal(self.intercept)) * width

    def buy_price(self, pool: Pool, token_amount: int) -> int:
        _check_amount(token_amount, "Token amount")
        with localcontext(PRECISION):
            sold = self.to_units(pool.tokens_sold)
            cost = self._integral(sold, self.to_units(token_amount)) * LAMPORTS_PER_SOL
        return _round(cost)

    def sell_return(self, pool: Pool, token_amount: int) -> int:
        _check_amount(token_amount, "Token amount")
        token_amount = self.clamp_sell(pool, token_amount)
        with localcontext(PRECISION):
            sold = self.to_units(pool.tokens_sold)
            width = self.to_units(token_amount)
            payout = self._integral(sold - width, width) * LAMPORTS_PER_SOL
        return _round(payout)

    def tokens_for_sol(self, pool: Pool, lamports: int) -> int:
        _check_amount(lamports, "Lamports")
        with localcontext(PRECISION):
            sold = self.to_units(pool.tokens_sold)
            # (slope / 2) t^2 + (slope * sold + intercept) t - spend = 0
            a = Decimal(self.slope) / 2
            b = Decimal(self.slope) * sold + Decimal(self.intercept)
            c = -(Decimal(lamports) / LAMPORTS_PER_SOL)
            discriminant = b * b - 4 * a * c
            if discriminant < 0:
                return 0
            tokens = (-b + discriminant.sqrt()) / (2 * a) * self.unit
        return max(_round(tokens), 0)

    def spot_price(self, pool: Pool) -> int:
        with localcontext(PRECISION):
            sold = self.to_units(pool.tokens_sold)
            price = (Decimal(self.slope) * sold + Decimal(self.intercept)) * LAMPORTS_PER_SOL
        return _round(price)


def build_curve(config: EngineConfig) -> BondingCurve:
    if config.curve is CurveKind.QUADRATIC:
        return QuadraticCurve(proportion=config.proportion)
    return LinearCurve(slope=config.linear_slope, intercept=config.linear_intercept)
