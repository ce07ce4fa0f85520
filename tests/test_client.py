import struct
from unittest.mock import Mock

import pytest
from solders.signature import Signature
from solders.system_program import ID as SYSTEM_PROGRAM_ID

from bonding_curve import instructions
from bonding_curve.client import BondingCurveClient
from bonding_curve.config import SellFeeMode
from bonding_curve.errors import (
    FeeSettlementFailed,
    InvalidIdentifier,
    InvalidInput,
    ProgramNotDeployed,
    SettlementFailed,
)

from .conftest import FEE_WALLET, MINT, PROGRAM_ID, account_response, make_pool, pool_bytes

SUPPLY = 10**18


def submitted_bundles(signer):
    return [call.args[0] for call in signer.sign_and_send.call_args_list]


def is_fee_transfer(ix, lamports):
    return ix.program_id == SYSTEM_PROGRAM_ID and bytes(ix.data)[4:] == lamports.to_bytes(8, "little")


@pytest.fixture
def pool():
    return make_pool(SUPPLY, 2_000 * 10**9, reserve_sol=5 * 10**9)


@pytest.fixture
def make_client(rpc, signer, engine_config, pool):
    def _build(pool_state=pool, **overrides):
        rpc.get_account_info.return_value = account_response(
            pool_bytes(pool_state) if pool_state is not None else None
        )
        return BondingCurveClient(rpc, signer, config=engine_config(**overrides))

    return _build


def test_get_pool_decodes_account(make_client, pool, rpc, addresses):
    client = make_client()

    assert client.get_pool(MINT) == pool
    pool_address, _ = addresses.pool(MINT)
    assert rpc.get_account_info.call_args.args[0] == pool_address


def test_get_pool_returns_none_when_absent(make_client):
    assert make_client(pool_state=None).get_pool(MINT) is None


def test_get_curve_configuration(make_client, rpc):
    client = make_client()
    rpc.get_account_info.return_value = account_response(b"\x00" * 8 + struct.pack("<d", 2.5))

    assert client.get_curve_configuration().fees == 2.5

    rpc.get_account_info.return_value = account_response(None)
    assert client.get_curve_configuration() is None


def test_buy_sends_fee_transfer_before_buy(make_client, signer):
    client = make_client(fee_percent=1)

    assert client.buy(MINT, 1_000_000) == Signature.default()

    (bundle,) = submitted_bundles(signer)
    assert len(bundle) == 2
    assert is_fee_transfer(bundle[0], 10_000)
    assert bundle[1].program_id == PROGRAM_ID
    assert bytes(bundle[1].data) == instructions.BUY_DISCRIMINATOR + (990_000).to_bytes(8, "little")


def test_buy_without_fee_sends_single_instruction(make_client, signer):
    client = make_client(fee_percent=0)

    client.buy(MINT, 1_000_000)

    (bundle,) = submitted_bundles(signer)
    assert len(bundle) == 1
    assert bytes(bundle[0].data)[8:] == (1_000_000).to_bytes(8, "little")


def test_buy_rejects_spend_consumed_by_fee(make_client, signer):
    client = make_client(fee_percent=100)

    with pytest.raises(InvalidInput):
        client.buy(MINT, 1_000)
    signer.sign_and_send.assert_not_called()


@pytest.mark.parametrize("amount", [0, -5, 1.5, True])
def test_invalid_amounts_never_touch_the_network(make_client, rpc, signer, amount):
    client = make_client()
    rpc.reset_mock()

    with pytest.raises(InvalidInput):
        client.buy(MINT, amount)
    with pytest.raises(InvalidInput):
        client.sell(MINT, amount)

    rpc.get_account_info.assert_not_called()
    rpc.get_latest_blockhash.assert_not_called()
    signer.sign_and_send.assert_not_called()


def test_invalid_token_is_rejected(make_client, signer):
    with pytest.raises(InvalidIdentifier):
        make_client().buy("not-a-mint", 1_000)
    signer.sign_and_send.assert_not_called()


def test_trading_without_signer_is_rejected(rpc, engine_config):
    client = BondingCurveClient(rpc, config=engine_config())

    with pytest.raises(InvalidInput):
        client.buy(MINT, 1_000)


def test_sell_without_pool_never_signs(make_client, signer):
    client = make_client(pool_state=None)

    with pytest.raises(InvalidInput):
        client.sell(MINT, 10**9)
    signer.sign_and_send.assert_not_called()


def test_atomic_sell_refetches_pool_and_appends_fee(make_client, rpc, signer, pool):
    client = make_client(fee_percent=1)
    expected = client.quote_sell(pool, 10**9)
    rpc.get_account_info.reset_mock()

    client.sell(MINT, 10**9)

    rpc.get_account_info.assert_called_once()
    (bundle,) = submitted_bundles(signer)
    assert len(bundle) == 2
    assert bytes(bundle[0].data)[:8] == instructions.SELL_DISCRIMINATOR
    assert bytes(bundle[0].data)[8:16] == (10**9).to_bytes(8, "little")
    assert expected.platform_fee > 0
    assert is_fee_transfer(bundle[1], expected.platform_fee)


def test_atomic_sell_without_fee(make_client, signer):
    make_client(fee_percent=0).sell(MINT, 10**9)

    (bundle,) = submitted_bundles(signer)
    assert len(bundle) == 1


def test_realized_sell_charges_fee_on_settled_proceeds(make_client, rpc, signer):
    client = make_client(fee_percent=1, sell_fee_mode=SellFeeMode.REALIZED)
    meta = Mock(pre_balances=[2_000_000, 0], post_balances=[2_995_000, 0], fee=5_000)
    rpc.get_transaction.return_value = Mock(value=Mock(transaction=Mock(meta=meta)))

    assert client.sell(MINT, 10**9) == Signature.default()

    sell_bundle, fee_bundle = submitted_bundles(signer)
    assert len(sell_bundle) == 1
    assert bytes(sell_bundle[0].data)[:8] == instructions.SELL_DISCRIMINATOR
    assert len(fee_bundle) == 1
    assert is_fee_transfer(fee_bundle[0], 10_000)


def test_realized_sell_without_metadata_fails(make_client, rpc, signer):
    client = make_client(sell_fee_mode="realized")
    rpc.get_transaction.return_value = Mock(value=None)

    with pytest.raises(SettlementFailed):
        client.sell(MINT, 10**9)
    assert signer.sign_and_send.call_count == 1


def test_oversized_sell_requests_only_the_sold_supply(make_client, rpc, signer):
    sold = 2 * 10**9
    client = make_client(pool_state=make_pool(SUPPLY, sold), fee_percent=1)
    expected = client.quote_sell(make_pool(SUPPLY, sold), sold)

    client.sell(MINT, 5 * 10**9)

    (bundle,) = submitted_bundles(signer)
    assert bytes(bundle[0].data)[8:16] == sold.to_bytes(8, "little")
    assert is_fee_transfer(bundle[1], expected.platform_fee)


def test_oversized_realized_sell_requests_only_the_sold_supply(make_client, rpc, signer):
    sold = 2 * 10**9
    client = make_client(pool_state=make_pool(SUPPLY, sold), fee_percent=0, sell_fee_mode="realized")
    meta = Mock(pre_balances=[1_000, 0], post_balances=[23_000, 0], fee=5_000)
    rpc.get_transaction.return_value = Mock(value=Mock(transaction=Mock(meta=meta)))

    client.sell(MINT, 5 * 10**9)

    (bundle,) = submitted_bundles(signer)
    assert bytes(bundle[0].data)[8:16] == sold.to_bytes(8, "little")


def test_sell_against_unsold_pool_never_signs(make_client, signer):
    client = make_client(pool_state=make_pool(SUPPLY))

    with pytest.raises(InvalidInput):
        client.sell(MINT, 10**9)
    signer.sign_and_send.assert_not_called()


def test_failed_fee_leg_reports_the_settled_sell(make_client, rpc, signer):
    client = make_client(fee_percent=1, sell_fee_mode=SellFeeMode.REALIZED)
    sell_signature, fee_signature = Signature.new_unique(), Signature.new_unique()
    signer.sign_and_send.side_effect = [sell_signature, fee_signature]
    rpc.confirm_transaction.side_effect = [
        Mock(value=[Mock(err=None)]),
        Mock(value=[Mock(err={"Custom": 1})]),
    ]
    meta = Mock(pre_balances=[2_000_000, 0], post_balances=[2_995_000, 0], fee=5_000)
    rpc.get_transaction.return_value = Mock(value=Mock(transaction=Mock(meta=meta)))

    with pytest.raises(FeeSettlementFailed) as excinfo:
        client.sell(MINT, 10**9)

    assert isinstance(excinfo.value, SettlementFailed)
    assert excinfo.value.sell_signature == sell_signature
    assert excinfo.value.signature == fee_signature
    assert excinfo.value.fee_lamports == 10_000
    assert excinfo.value.detail == {"Custom": 1}
    assert signer.sign_and_send.call_count == 2


def test_quote_buy_includes_token_estimate(make_client, pool):
    client = make_client(fee_percent=1)
    quote = client.quote_buy(1_000_000, pool)

    assert (quote.platform_fee, quote.net_amount) == (10_000, 990_000)
    assert quote.counterparty_amount == client.curve.tokens_for_sol(pool, 990_000)


def test_create_pool_requires_deployed_program(make_client, rpc, signer):
    client = make_client()
    rpc.get_account_info.return_value = account_response(None)

    with pytest.raises(ProgramNotDeployed):
        client.create_pool(MINT)
    signer.sign_and_send.assert_not_called()


def test_create_and_initialize_pool_settles_twice(make_client, rpc, signer):
    client = make_client()
    rpc.get_account_info.return_value = account_response(b"\x01")

    assert client.create_and_initialize_pool(MINT) == (Signature.default(), Signature.default())

    create, seed = submitted_bundles(signer)
    assert bytes(create[0].data) == instructions.CREATE_POOL_DISCRIMINATOR
    assert bytes(seed[0].data) == instructions.ADD_LIQUIDITY_DISCRIMINATOR
    assert rpc.confirm_transaction.call_count == 2


def test_failed_create_stops_before_liquidity(make_client, rpc, signer):
    client = make_client()
    rpc.get_account_info.return_value = account_response(b"\x01")
    rpc.confirm_transaction.return_value = Mock(value=[Mock(err={"Custom": 0})])

    with pytest.raises(SettlementFailed):
        client.create_and_initialize_pool(MINT)
    assert signer.sign_and_send.call_count == 1


def test_initialize_and_remove_liquidity(make_client, signer, addresses):
    client = make_client()

    client.initialize(0.5)
    client.remove_liquidity(MINT)

    initialize, remove = submitted_bundles(signer)
    assert bytes(initialize[0].data)[:8] == instructions.INITIALIZE_DISCRIMINATOR
    _, vault_bump = addresses.sol_vault(MINT)
    assert bytes(remove[0].data) == instructions.REMOVE_LIQUIDITY_DISCRIMINATOR + bytes([vault_bump])


def test_client_uses_configured_fee_wallet(make_client, signer):
    make_client(fee_percent=1).buy(MINT, 1_000_000)

    (bundle,) = submitted_bundles(signer)
    assert bundle[0].accounts[1].pubkey == FEE_WALLET
