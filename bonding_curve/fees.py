"""Platform fee policy and fee-inclusive quotes."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .curve import BondingCurve
from .errors import InvalidInput
from .state import Pool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Quote:
    """Fee breakdown for one trade.

    Buy: ``gross_amount`` is the full spend, ``net_amount`` what reaches the
    curve and ``counterparty_amount`` the tokens expected back (``None`` without
    a pool snapshot). Sell: ``gross_amount`` is the curve payout,
    ``net_amount`` what the trader keeps and ``counterparty_amount`` the
    tokens sold.
    """

    gross_amount: int
    platform_fee: int
    net_amount: int
    counterparty_amount: Optional[int]


@dataclass(frozen=True)
class FeePolicy:
    fee_percent: int

    def __post_init__(self) -> None:
        if not 0 <= self.fee_percent <= 100:
            raise InvalidInput(f"Fee percent must be within 0..100, got {self.fee_percent}")

    def platform_fee(self, amount: int) -> int:
        if amount < 0:
            raise InvalidInput(f"Cannot take a fee from a negative amount {amount}")
        return amount * self.fee_percent // 100

    def net_for_buy(self, total: int) -> int:
        return total - self.platform_fee(total)

    def quote_buy(self, curve: BondingCurve, spend: int, pool: Optional[Pool] = None) -> Quote:
        """Fee comes off the spend first; only the remainder is priced on the curve."""
        fee = self.platform_fee(spend)
        net = spend - fee
        tokens = curve.tokens_for_sol(pool, net) if pool is not None else None
        logger.debug("Buy quote: spend=%d fee=%d net=%d tokens=%s", spend, fee, net, tokens)
        return Quote(gross_amount=spend, platform_fee=fee, net_amount=net, counterparty_amount=tokens)

    def quote_sell(self, curve: BondingCurve, pool: Pool, token_amount: int) -> Quote:
        """Fee is carved out of the curve's gross payout.

        The token amount is capped at the sold supply before pricing, so the
        quoted ``counterparty_amount`` is what a sell instruction may request.
        """
        token_amount = curve.clamp_sell(pool, token_amount)
        gross = curve.sell_return(pool, token_amount)
        fee = self.platform_fee(gross)
        logger.debug("Sell quote: tokens=%d gross=%d fee=%d", token_amount, gross, fee)
        return Quote(
            gross_amount=gross,
            platform_fee=fee,
            net_amount=gross - fee,
            counterparty_amount=token_amount,
        )
