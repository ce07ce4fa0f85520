"""High-level client: read pool state, quote, assemble and settle trades."""
from __future__ import annotations

import logging
from typing import Optional, Tuple

from solana.rpc.api import Client
from solders.pubkey import Pubkey
from solders.signature import Signature

from . import instructions
from .addresses import ProgramAddresses, PubkeyLike, parse_pubkey
from .config import EngineConfig, SellFeeMode
from .curve import build_curve
from .errors import FeeSettlementFailed, InvalidInput, ProgramNotDeployed, SettlementFailed
from .fees import FeePolicy, Quote
from .state import CurveConfiguration, Pool, decode_curve_configuration, decode_pool
from .submission import TransactionSigner, TransactionSubmitter

logger = logging.getLogger(__name__)


def _check_positive(amount: int, name: str) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidInput(f"{name} must be a positive integer, got {amount!r}")


class BondingCurveClient:
    """Trading client for one deployment of the bonding curve program.

    Every trade is a strictly sequential pipeline: read the pool, quote,
    assemble, sign, submit and wait for settlement. Pool snapshots are never
    cached between calls, and nothing here coordinates concurrent trades
    against the same pool; the ledger decides ordering and the settled
    outcome may reflect a different pool state than the one quoted.
    """

    def __init__(
        self,
        client: Client,
        signer: Optional[TransactionSigner] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.client = client
        self.signer = signer
        self.config = config or EngineConfig.from_env()
        self.addresses = ProgramAddresses(self.config.program_id)
        self.curve = build_curve(self.config)
        self.fees = FeePolicy(self.config.fee_percent)
        self.submitter = (
            TransactionSubmitter(
                client,
                signer,
                commitment=self.config.commitment,
                sleep_seconds=self.config.confirm_sleep_seconds,
            )
            if signer is not None
            else None
        )

    # Reads

    def _account_data(self, address: Pubkey) -> Optional[bytes]:
        response = self.client.get_account_info(address, commitment=self.config.commitment)
        if response.value is None:
            return None
        return bytes(response.value.data)

    def get_pool(self, token: PubkeyLike) -> Optional[Pool]:
        """Current pool snapshot, or ``None`` if no pool exists for ``token``."""
        pool_address, _ = self.addresses.pool(token)
        data = self._account_data(pool_address)
        if data is None:
            logger.debug("No pool account at %s", pool_address)
            return None
        return decode_pool(data)

    def get_curve_configuration(self) -> Optional[CurveConfiguration]:
        address, _ = self.addresses.curve_configuration()
        data = self._account_data(address)
        if data is None:
            return None
        return decode_curve_configuration(data)

    # Quotes

    def quote_buy(self, lamports: int, pool: Optional[Pool] = None) -> Quote:
        _check_positive(lamports, "Buy amount")
        return self.fees.quote_buy(self.curve, lamports, pool)

    def quote_sell(self, pool: Pool, token_amount: int) -> Quote:
        _check_positive(token_amount, "Sell amount")
        return self.fees.quote_sell(self.curve, pool, token_amount)

    # Actions

    def _submitter(self) -> TransactionSubmitter:
        if self.submitter is None:
            raise InvalidInput("A signer is required to submit transactions")
        return self.submitter

    def _payer(self) -> Pubkey:
        return self._submitter().signer.pubkey()

    def initialize(self, fee: float) -> Signature:
        ix = instructions.initialize(self.addresses, self._payer(), fee)
        return self._submitter().submit([ix])

    def create_pool(self, token: PubkeyLike) -> Signature:
        mint = parse_pubkey(token)
        payer = self._payer()
        program = self.client.get_account_info(self.config.program_id, commitment=self.config.commitment)
        if program.value is None:
            raise ProgramNotDeployed(f"Program {self.config.program_id} not found on this cluster")
        ix = instructions.create_pool(self.addresses, mint, payer)
        return self._submitter().submit([ix])

    def add_liquidity(self, token: PubkeyLike) -> Signature:
        ix = instructions.add_liquidity(self.addresses, parse_pubkey(token), self._payer())
        return self._submitter().submit([ix])

    def remove_liquidity(self, token: PubkeyLike) -> Signature:
        ix = instructions.remove_liquidity(self.addresses, parse_pubkey(token), self._payer())
        return self._submitter().submit([ix])

    def create_and_initialize_pool(self, token: PubkeyLike) -> Tuple[Signature, Signature]:
        """Create the pool, then seed it with the payer's tokens."""
        pool_signature = self.create_pool(token)
        logger.info("Pool created: %s", pool_signature)
        liquidity_signature = self.add_liquidity(token)
        logger.info("Pool seeded: %s", liquidity_signature)
        return pool_signature, liquidity_signature

    def buy(self, token: PubkeyLike, lamports: int) -> Signature:
        """Spend ``lamports`` in total; the platform fee comes out of that spend."""
        mint = parse_pubkey(token)
        _check_positive(lamports, "Buy amount")
        payer = self._payer()

        quote = self.quote_buy(lamports, self.get_pool(mint))
        if quote.net_amount <= 0:
            raise InvalidInput(f"Nothing left to spend after a {quote.platform_fee} lamport fee")
        logger.info(
            "Buy %s: total=%d fee=%d net=%d expected_tokens=%s",
            mint,
            quote.gross_amount,
            quote.platform_fee,
            quote.net_amount,
            quote.counterparty_amount,
        )
        bundle = instructions.buy_bundle(self.addresses, mint, payer, quote, self.config.fee_recipient)
        return self._submitter().submit(bundle)

    def sell(self, token: PubkeyLike, token_amount: int) -> Signature:
        """Sell ``token_amount`` raw tokens and pay the platform fee on the proceeds.

        The pool is always re-read here so the fee is sized from the freshest
        state available, never from a quote the caller saw earlier.
        """
        mint = parse_pubkey(token)
        _check_positive(token_amount, "Sell amount")
        payer = self._payer()

        pool = self.get_pool(mint)
        if pool is None:
            raise InvalidInput(f"No pool exists for {mint}; cannot size the sell fee")
        quote = self.quote_sell(pool, token_amount)
        if quote.counterparty_amount < token_amount:
            logger.warning(
                "Sell of %d exceeds sold supply of %s; selling %d instead",
                token_amount,
                mint,
                quote.counterparty_amount,
            )
        if quote.counterparty_amount <= 0:
            raise InvalidInput(f"Nothing has been sold from the {mint} pool yet")
        logger.info(
            "Sell %s: tokens=%d gross=%d fee=%d net=%d",
            mint,
            quote.counterparty_amount,
            quote.gross_amount,
            quote.platform_fee,
            quote.net_amount,
        )

        if self.config.sell_fee_mode is SellFeeMode.ATOMIC:
            bundle = instructions.sell_bundle(self.addresses, mint, payer, quote, self.config.fee_recipient)
            return self._submitter().submit(bundle)

        sell_ix = instructions.sell(self.addresses, mint, payer, quote.counterparty_amount)
        signature = self._submitter().submit([sell_ix])
        proceeds = self._realized_proceeds(signature)
        fee = self.fees.platform_fee(max(proceeds, 0))
        logger.info("Sell %s realized %d lamports; fee %d", signature, proceeds, fee)
        fee_ix = instructions.fee_transfer(payer, self.config.fee_recipient, fee)
        if fee_ix is not None:
            try:
                fee_signature = self._submitter().submit([fee_ix])
            except SettlementFailed as exc:
                logger.error("Sell %s settled but its %d lamport fee did not: %s", signature, fee, exc)
                raise FeeSettlementFailed(
                    f"Sell {signature} settled; fee transfer failed: {exc}",
                    sell_signature=signature,
                    fee_lamports=fee,
                    detail=exc.detail,
                    signature=exc.signature,
                ) from exc
            logger.info("Sell fee settled: %s", fee_signature)
        return signature

    def _realized_proceeds(self, signature: Signature) -> int:
        """Fee payer's balance change in a settled transaction, before network fees."""
        response = self.client.get_transaction(
            signature,
            encoding="json",
            commitment=self.config.commitment,
            max_supported_transaction_version=0,
        )
        if response.value is None or response.value.transaction.meta is None:
            raise SettlementFailed("Settled transaction has no metadata", signature=signature)
        meta = response.value.transaction.meta
        return meta.post_balances[0] - meta.pre_balances[0] + meta.fee
