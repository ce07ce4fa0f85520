"""Read-only inspection of bonding curve pools."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Dict, List, Optional

from solana.rpc.api import Client

from . import config
from .client import BondingCurveClient
from .config import CurveKind, EngineConfig
from .errors import BondingCurveError
from .fees import Quote
from .state import Pool, sale_progress_bps


def pool_to_dict(client: BondingCurveClient, pool: Pool) -> Dict:
    return {
        "creator": str(pool.creator),
        "token": str(pool.token),
        "total_supply": pool.total_supply,
        "reserve_token": pool.reserve_token,
        "reserve_sol": pool.reserve_sol,
        "bump": pool.bump,
        "tokens_sold": pool.tokens_sold,
        "progress_bps": sale_progress_bps(pool),
        "spot_price_lamports": client.curve.spot_price(pool),
        "curve": client.curve.kind.value,
    }


def quote_to_dict(quote: Quote) -> Dict:
    return {
        "gross_amount": quote.gross_amount,
        "platform_fee": quote.platform_fee,
        "net_amount": quote.net_amount,
        "counterparty_amount": quote.counterparty_amount,
    }


def _require_pool(client: BondingCurveClient, mint: str) -> Optional[Pool]:
    pool = client.get_pool(mint)
    if pool is None:
        logging.error("No pool found for %s", mint)
    return pool


def cmd_addresses(client: BondingCurveClient, args: argparse.Namespace) -> Optional[Dict]:
    curve_configuration, config_bump = client.addresses.curve_configuration()
    pool, pool_bump = client.addresses.pool(args.mint)
    vault, vault_bump = client.addresses.sol_vault(args.mint)
    return {
        "program_id": str(client.config.program_id),
        "curve_configuration": {"address": str(curve_configuration), "bump": config_bump},
        "pool": {"address": str(pool), "bump": pool_bump},
        "sol_vault": {"address": str(vault), "bump": vault_bump},
        "pool_token_account": str(client.addresses.pool_token_account(args.mint)),
    }


def cmd_pool(client: BondingCurveClient, args: argparse.Namespace) -> Optional[Dict]:
    pool = _require_pool(client, args.mint)
    return pool_to_dict(client, pool) if pool else None


def cmd_config(client: BondingCurveClient, args: argparse.Namespace) -> Optional[Dict]:
    curve_configuration = client.get_curve_configuration()
    if curve_configuration is None:
        logging.error("Curve configuration has not been initialized")
        return None
    return {"fees": curve_configuration.fees}


def cmd_quote_buy(client: BondingCurveClient, args: argparse.Namespace) -> Optional[Dict]:
    pool = _require_pool(client, args.mint)
    return quote_to_dict(client.quote_buy(args.lamports, pool)) if pool else None


def cmd_quote_sell(client: BondingCurveClient, args: argparse.Namespace) -> Optional[Dict]:
    pool = _require_pool(client, args.mint)
    return quote_to_dict(client.quote_sell(pool, args.amount)) if pool else None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect bonding curve pools and quotes")
    parser.add_argument("--rpc", default=config.RPC_ENDPOINTS[0], help="RPC endpoint to use")
    parser.add_argument(
        "--curve",
        choices=[kind.value for kind in CurveKind],
        default=None,
        help="Curve model override (defaults to BONDING_CURVE_MODEL)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    addresses = sub.add_parser("addresses", help="Derive program addresses for a mint")
    addresses.add_argument("mint", help="Token mint address")
    addresses.set_defaults(func=cmd_addresses)

    pool = sub.add_parser("pool", help="Decode the pool account for a mint")
    pool.add_argument("mint", help="Token mint address")
    pool.set_defaults(func=cmd_pool)

    curve_config = sub.add_parser("config", help="Read the global curve configuration")
    curve_config.set_defaults(func=cmd_config)

    quote_buy = sub.add_parser("quote-buy", help="Quote a buy including the platform fee")
    quote_buy.add_argument("mint", help="Token mint address")
    quote_buy.add_argument("lamports", type=int, help="Total lamports to spend")
    quote_buy.set_defaults(func=cmd_quote_buy)

    quote_sell = sub.add_parser("quote-sell", help="Quote a sell including the platform fee")
    quote_sell.add_argument("mint", help="Token mint address")
    quote_sell.add_argument("amount", type=int, help="Raw token amount to sell")
    quote_sell.set_defaults(func=cmd_quote_sell)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )

    try:
        overrides = {"curve": args.curve} if args.curve else {}
        client = BondingCurveClient(Client(args.rpc, timeout=45), config=EngineConfig.from_env(**overrides))
        payload = args.func(client, args)
    except BondingCurveError as exc:
        logging.error("%s", exc)
        return 1
    if payload is None:
        return 1

    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
