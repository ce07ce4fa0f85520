"""Deterministic account addresses for a bonding curve deployment."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import base58
from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from .errors import InvalidIdentifier

logger = logging.getLogger(__name__)

CURVE_CONFIGURATION_SEED = b"CurveConfiguration"
POOL_SEED = b"liquidity_pool"
SOL_VAULT_SEED = b"liquidity_sol_vault"

PubkeyLike = Union[Pubkey, str, bytes]


def parse_pubkey(value: PubkeyLike) -> Pubkey:
    """Validate and convert a base58 string or raw 32 bytes into a Pubkey."""
    if isinstance(value, Pubkey):
        return value
    if not value:
        raise InvalidIdentifier("Identifier is missing or empty")
    if isinstance(value, str):
        try:
            raw = base58.b58decode(value.strip())
        except ValueError as exc:
            raise InvalidIdentifier(f"Identifier {value!r} is not base58: {exc}") from exc
    elif isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        raise InvalidIdentifier(f"Unsupported identifier type {type(value).__name__}")
    if len(raw) != 32:
        raise InvalidIdentifier(f"Identifier must decode to 32 bytes, got {len(raw)}")
    return Pubkey.from_bytes(raw)


def derive(seeds: Sequence[bytes], program_id: Pubkey) -> Tuple[Pubkey, int]:
    """Return the first off-curve address for ``seeds``, searching bumps from 255 down."""
    address, bump = Pubkey.find_program_address(list(seeds), program_id)
    logger.debug("Derived %s (bump %d) from seeds %s", address, bump, [seed.hex() for seed in seeds])
    return address, bump


@dataclass(frozen=True)
class ProgramAddresses:
    """Seed families used by one deployment of the bonding curve program."""

    program_id: Pubkey

    def curve_configuration(self) -> Tuple[Pubkey, int]:
        return derive([CURVE_CONFIGURATION_SEED], self.program_id)

    def pool(self, token: PubkeyLike) -> Tuple[Pubkey, int]:
        return derive([POOL_SEED, bytes(parse_pubkey(token))], self.program_id)

    def sol_vault(self, token: PubkeyLike) -> Tuple[Pubkey, int]:
        return derive([SOL_VAULT_SEED, bytes(parse_pubkey(token))], self.program_id)

    def pool_token_account(self, token: PubkeyLike) -> Pubkey:
        """Associated token account owned by the (off-curve) pool address."""
        mint = parse_pubkey(token)
        pool, _ = self.pool(mint)
        return get_associated_token_address(pool, mint)

    @staticmethod
    def user_token_account(owner: PubkeyLike, token: PubkeyLike) -> Pubkey:
        return get_associated_token_address(parse_pubkey(owner), parse_pubkey(token))
