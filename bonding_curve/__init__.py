"""Client-side pricing and transaction assembly for bonding curve token pools."""
from .client import BondingCurveClient
from .config import CurveKind, EngineConfig, SellFeeMode
from .curve import BondingCurve, LinearCurve, QuadraticCurve, build_curve
from .errors import (
    BondingCurveError,
    CorruptAccount,
    FeeSettlementFailed,
    InvalidIdentifier,
    InvalidInput,
    ProgramNotDeployed,
    SettlementFailed,
)
from .fees import FeePolicy, Quote
from .state import CurveConfiguration, Pool, decode_curve_configuration, decode_pool
from .submission import KeypairSigner, TransactionSigner, TransactionSubmitter

__all__ = [
    "BondingCurve",
    "BondingCurveClient",
    "BondingCurveError",
    "CorruptAccount",
    "CurveConfiguration",
    "CurveKind",
    "EngineConfig",
    "FeeSettlementFailed",
    "FeePolicy",
    "InvalidIdentifier",
    "InvalidInput",
    "KeypairSigner",
    "LinearCurve",
    "Pool",
    "ProgramNotDeployed",
    "QuadraticCurve",
    "Quote",
    "SellFeeMode",
    "SettlementFailed",
    "TransactionSigner",
    "TransactionSubmitter",
    "build_curve",
    "decode_curve_configuration",
    "decode_pool",
]
