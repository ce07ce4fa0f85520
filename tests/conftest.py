import struct
from unittest.mock import Mock

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from bonding_curve.addresses import ProgramAddresses
from bonding_curve.config import EngineConfig
from bonding_curve.state import Pool

PROGRAM_ID = Pubkey.from_string("2RvPPes11jGU8CDZDPLZdKRGZEtWye5ZTJ4PZCKJuUoZ")
FEE_WALLET = Pubkey.from_string("EkZvFSSYzABfn32sydHGWbaMZWhm5JgjYcDhdmUWeGV6")
MINT = Pubkey.from_string("So11111111111111111111111111111111111111112")
CREATOR = Pubkey.from_string("EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v")


def make_pool(total_supply: int, sold: int = 0, reserve_sol: int = 0, bump: int = 254) -> Pool:
    return Pool(
        creator=CREATOR,
        token=MINT,
        total_supply=total_supply,
        reserve_token=total_supply - sold,
        reserve_sol=reserve_sol,
        bump=bump,
    )


def pool_bytes(pool: Pool, header: bytes = b"\x00" * 8) -> bytes:
    return struct.pack(
        "<8s32s32sQQQB",
        header,
        bytes(pool.creator),
        bytes(pool.token),
        pool.total_supply,
        pool.reserve_token,
        pool.reserve_sol,
        pool.bump,
    )


def account_response(data):
    if data is None:
        return Mock(value=None)
    return Mock(value=Mock(data=data))


@pytest.fixture
def addresses():
    return ProgramAddresses(PROGRAM_ID)


@pytest.fixture
def payer():
    return Keypair()


@pytest.fixture
def engine_config():
    def _build(**overrides):
        values = {"program_id": PROGRAM_ID, "fee_recipient": FEE_WALLET, "confirm_sleep_seconds": 0}
        values.update(overrides)
        return EngineConfig(**values)

    return _build


@pytest.fixture
def rpc():
    """RPC client double that settles every transaction successfully."""
    client = Mock()
    client.get_latest_blockhash.return_value = Mock(
        value=Mock(blockhash=Hash.default(), last_valid_block_height=1_000)
    )
    client.confirm_transaction.return_value = Mock(value=[Mock(err=None)])
    return client


@pytest.fixture
def signer(payer):
    mock_signer = Mock()
    mock_signer.pubkey.return_value = payer.pubkey()
    mock_signer.sign_and_send.return_value = Signature.default()
    return mock_signer
