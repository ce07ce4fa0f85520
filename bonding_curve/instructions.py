"""Instruction builders for the bonding curve program.

Discriminators, argument encodings and account orderings are a wire contract
with the deployed program. Any change on the program side needs a matching
change here; nothing checks it at build time.
"""
from __future__ import annotations

import logging
import math
from typing import List, Optional

from construct import Float64l, Int8ul, Int64ul, Struct
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.system_program import TransferParams, transfer
from solders.sysvar import RENT
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID

from .addresses import ProgramAddresses, PubkeyLike, parse_pubkey
from .errors import InvalidInput
from .fees import Quote

logger = logging.getLogger(__name__)

INITIALIZE_DISCRIMINATOR = bytes([175, 175, 109, 31, 13, 152, 155, 237])
CREATE_POOL_DISCRIMINATOR = bytes([233, 146, 209, 142, 207, 104, 64, 188])
ADD_LIQUIDITY_DISCRIMINATOR = bytes([181, 157, 89, 67, 143, 182, 52, 72])
REMOVE_LIQUIDITY_DISCRIMINATOR = bytes([80, 85, 209, 72, 24, 206, 177, 108])
BUY_DISCRIMINATOR = bytes([102, 6, 61, 18, 1, 218, 235, 234])
SELL_DISCRIMINATOR = bytes([51, 230, 133, 164, 1, 127, 131, 173])

INITIALIZE_ARGS = Struct("fee" / Float64l)
REMOVE_LIQUIDITY_ARGS = Struct("bump" / Int8ul)
BUY_ARGS = Struct("amount" / Int64ul)
SELL_ARGS = Struct("amount" / Int64ul, "bump" / Int8ul)

U64_MAX = 2**64 - 1


def _writable(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey=pubkey, is_signer=False, is_writable=True)


def _readonly(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey=pubkey, is_signer=False, is_writable=False)


def _payer(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey=pubkey, is_signer=True, is_writable=True)


def _check_u64(amount: int, name: str) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidInput(f"{name} must be an integer, got {amount!r}")
    if amount <= 0:
        raise InvalidInput(f"{name} must be positive, got {amount}")
    if amount > U64_MAX:
        raise InvalidInput(f"{name} does not fit in a u64: {amount}")
    return amount


def _build(program_id: Pubkey, accounts: List[AccountMeta], data: bytes) -> Instruction:
    logger.debug(
        "Instruction for %s: accounts=%s data=%s",
        program_id,
        [(str(meta.pubkey), meta.is_signer, meta.is_writable) for meta in accounts],
        data.hex(),
    )
    return Instruction(program_id, data, accounts)


def _liquidity_accounts(addresses: ProgramAddresses, mint: Pubkey, payer: Pubkey) -> List[AccountMeta]:
    pool, _ = addresses.pool(mint)
    sol_vault, _ = addresses.sol_vault(mint)
    return [
        _writable(pool),
        _writable(mint),
        _writable(addresses.pool_token_account(mint)),
        _writable(addresses.user_token_account(payer, mint)),
        _writable(sol_vault),
        _payer(payer),
        _readonly(RENT),
        _readonly(SYSTEM_PROGRAM_ID),
        _readonly(TOKEN_PROGRAM_ID),
        _readonly(ASSOCIATED_TOKEN_PROGRAM_ID),
    ]


def _trade_accounts(addresses: ProgramAddresses, mint: Pubkey, payer: Pubkey) -> List[AccountMeta]:
    curve_configuration, _ = addresses.curve_configuration()
    pool, _ = addresses.pool(mint)
    sol_vault, _ = addresses.sol_vault(mint)
    return [
        _writable(curve_configuration),
        _writable(pool),
        _writable(mint),
        _writable(addresses.pool_token_account(mint)),
        _writable(sol_vault),
        _writable(addresses.user_token_account(payer, mint)),
        _payer(payer),
        _readonly(RENT),
        _readonly(SYSTEM_PROGRAM_ID),
        _readonly(TOKEN_PROGRAM_ID),
        _readonly(ASSOCIATED_TOKEN_PROGRAM_ID),
    ]


def initialize(addresses: ProgramAddresses, payer: PubkeyLike, fee: float) -> Instruction:
    """Create the global curve configuration holding the program fee rate."""
    if isinstance(fee, bool) or not isinstance(fee, (int, float)) or not math.isfinite(fee) or fee < 0:
        raise InvalidInput(f"Fee rate must be a finite non-negative number, got {fee!r}")
    payer = parse_pubkey(payer)
    curve_configuration, _ = addresses.curve_configuration()
    accounts = [
        _writable(curve_configuration),
        _payer(payer),
        _readonly(RENT),
        _readonly(SYSTEM_PROGRAM_ID),
    ]
    data = INITIALIZE_DISCRIMINATOR + INITIALIZE_ARGS.build({"fee": float(fee)})
    return _build(addresses.program_id, accounts, data)


def create_pool(addresses: ProgramAddresses, token: PubkeyLike, payer: PubkeyLike) -> Instruction:
    mint = parse_pubkey(token)
    payer = parse_pubkey(payer)
    pool, _ = addresses.pool(mint)
    accounts = [
        _writable(pool),
        _writable(mint),
        _writable(addresses.pool_token_account(mint)),
        _payer(payer),
        _readonly(TOKEN_PROGRAM_ID),
        _readonly(ASSOCIATED_TOKEN_PROGRAM_ID),
        _readonly(RENT),
        _readonly(SYSTEM_PROGRAM_ID),
    ]
    return _build(addresses.program_id, accounts, CREATE_POOL_DISCRIMINATOR)


def add_liquidity(addresses: ProgramAddresses, token: PubkeyLike, payer: PubkeyLike) -> Instruction:
    """Seed the pool with the payer's full token balance."""
    mint = parse_pubkey(token)
    accounts = _liquidity_accounts(addresses, mint, parse_pubkey(payer))
    return _build(addresses.program_id, accounts, ADD_LIQUIDITY_DISCRIMINATOR)


def remove_liquidity(addresses: ProgramAddresses, token: PubkeyLike, payer: PubkeyLike) -> Instruction:
    mint = parse_pubkey(token)
    accounts = _liquidity_accounts(addresses, mint, parse_pubkey(payer))
    _, vault_bump = addresses.sol_vault(mint)
    data = REMOVE_LIQUIDITY_DISCRIMINATOR + REMOVE_LIQUIDITY_ARGS.build({"bump": vault_bump})
    return _build(addresses.program_id, accounts, data)


def buy(addresses: ProgramAddresses, token: PubkeyLike, payer: PubkeyLike, net_lamports: int) -> Instruction:
    """Spend ``net_lamports`` (already net of the platform fee) on the curve."""
    _check_u64(net_lamports, "Buy amount")
    mint = parse_pubkey(token)
    accounts = _trade_accounts(addresses, mint, parse_pubkey(payer))
    data = BUY_DISCRIMINATOR + BUY_ARGS.build({"amount": net_lamports})
    return _build(addresses.program_id, accounts, data)


def sell(addresses: ProgramAddresses, token: PubkeyLike, payer: PubkeyLike, token_amount: int) -> Instruction:
    _check_u64(token_amount, "Sell amount")
    mint = parse_pubkey(token)
    accounts = _trade_accounts(addresses, mint, parse_pubkey(payer))
    _, vault_bump = addresses.sol_vault(mint)
    data = SELL_DISCRIMINATOR + SELL_ARGS.build({"amount": token_amount, "bump": vault_bump})
    return _build(addresses.program_id, accounts, data)


def fee_transfer(payer: PubkeyLike, recipient: PubkeyLike, lamports: int) -> Optional[Instruction]:
    """System transfer of the platform fee, or ``None`` when there is nothing to move."""
    if lamports <= 0:
        return None
    return transfer(
        TransferParams(
            from_pubkey=parse_pubkey(payer),
            to_pubkey=parse_pubkey(recipient),
            lamports=_check_u64(lamports, "Fee"),
        )
    )


def buy_bundle(
    addresses: ProgramAddresses,
    token: PubkeyLike,
    payer: PubkeyLike,
    quote: Quote,
    fee_recipient: PubkeyLike,
) -> List[Instruction]:
    """Fee transfer first, then the buy sized to the net spend."""
    instructions = []
    fee_ix = fee_transfer(payer, fee_recipient, quote.platform_fee)
    if fee_ix is not None:
        instructions.append(fee_ix)
    instructions.append(buy(addresses, token, payer, quote.net_amount))
    return instructions


def sell_bundle(
    addresses: ProgramAddresses,
    token: PubkeyLike,
    payer: PubkeyLike,
    quote: Quote,
    fee_recipient: PubkeyLike,
) -> List[Instruction]:
    """Sell the full token amount, then pay the fee out of the expected proceeds."""
    instructions = [sell(addresses, token, payer, quote.counterparty_amount)]
    fee_ix = fee_transfer(payer, fee_recipient, quote.platform_fee)
    if fee_ix is not None:
        instructions.append(fee_ix)
    return instructions
