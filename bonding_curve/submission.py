"""Signing and settlement of assembled instruction bundles.

Handing a transaction to the signer is the point of no return: once
``sign_and_send`` has been called the transaction may land on the ledger
whatever happens afterwards, so nothing here cancels, replays or retries.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

from solana.exceptions import SolanaRpcException
from solana.rpc.api import Client
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.core import RPCException, UnconfirmedTxError
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from .errors import InvalidInput, SettlementFailed

logger = logging.getLogger(__name__)


class TransactionSigner(Protocol):
    """Anything that can sign for a fee payer and broadcast the result."""

    def pubkey(self) -> Pubkey:
        ...

    def sign_and_send(
        self,
        instructions: Sequence[Instruction],
        payer: Pubkey,
        recent_blockhash: Hash,
    ) -> Signature:
        ...


class KeypairSigner:
    """Signs with a local keypair and broadcasts through the RPC client."""

    def __init__(self, client: Client, keypair: Keypair, opts: Optional[TxOpts] = None):
        self.client = client
        self.keypair = keypair
        self.opts = opts or TxOpts(skip_preflight=False, skip_confirmation=True, preflight_commitment=Confirmed)

    def pubkey(self) -> Pubkey:
        return self.keypair.pubkey()

    def sign_and_send(
        self,
        instructions: Sequence[Instruction],
        payer: Pubkey,
        recent_blockhash: Hash,
    ) -> Signature:
        message = MessageV0.try_compile(payer, list(instructions), [], recent_blockhash)
        txn = VersionedTransaction(message, [self.keypair])
        return self.client.send_transaction(txn, opts=self.opts).value


class TransactionSubmitter:
    """Submit an instruction bundle and block until the ledger settles it."""

    def __init__(
        self,
        client: Client,
        signer: TransactionSigner,
        commitment: Commitment = Confirmed,
        sleep_seconds: float = 0.5,
    ):
        self.client = client
        self.signer = signer
        self.commitment = commitment
        self.sleep_seconds = sleep_seconds

    def submit(self, instructions: Sequence[Instruction]) -> Signature:
        if not instructions:
            raise InvalidInput("Refusing to submit an empty instruction bundle")

        # Fresh anti-replay token per submission, never one cached from quoting
        latest = self.client.get_latest_blockhash(self.commitment).value
        payer = self.signer.pubkey()
        logger.debug(
            "Submitting %d instruction(s) for payer %s with blockhash %s",
            len(instructions),
            payer,
            latest.blockhash,
        )

        try:
            signature = self.signer.sign_and_send(instructions, payer, latest.blockhash)
        except RPCException as exc:
            logger.warning("Transaction rejected before broadcast: %s", exc)
            raise SettlementFailed("Transaction rejected by the ledger", detail=exc.args[0] if exc.args else None) from exc
        except SolanaRpcException as exc:
            logger.warning("Broadcast outcome unknown: %s", exc)
            raise SettlementFailed("Broadcast outcome unknown", detail=str(exc)) from exc
        logger.info("Transaction sent: %s", signature)

        try:
            response = self.client.confirm_transaction(
                signature,
                self.commitment,
                sleep_seconds=self.sleep_seconds,
                last_valid_block_height=latest.last_valid_block_height,
            )
        except UnconfirmedTxError as exc:
            logger.warning("Transaction %s expired unconfirmed: %s", signature, exc)
            raise SettlementFailed("Transaction was not confirmed before expiry", detail=str(exc), signature=signature) from exc
        except SolanaRpcException as exc:
            logger.warning("Lost contact while confirming %s: %s", signature, exc)
            raise SettlementFailed("Settlement status unknown", detail=str(exc), signature=signature) from exc

        status = response.value[0] if response.value else None
        if status is None:
            raise SettlementFailed("Ledger returned no status for transaction", signature=signature)
        if status.err is not None:
            logger.warning("Transaction %s failed on ledger: %s", signature, status.err)
            raise SettlementFailed(f"Transaction failed: {status.err}", detail=status.err, signature=signature)

        logger.info("Transaction settled: %s", signature)
        return signature
