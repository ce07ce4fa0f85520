"""Exception types raised by the bonding curve client."""
from __future__ import annotations

from typing import Any, Optional

from solders.signature import Signature


class BondingCurveError(Exception):
    """Base class for every error raised by this package."""


class InvalidInput(BondingCurveError):
    """Rejected before any network interaction; never worth retrying."""


class InvalidIdentifier(InvalidInput):
    """A token, wallet or program identifier is not a 32-byte base58 key."""


class CorruptAccount(BondingCurveError):
    """Account bytes do not match the expected layout.

    Usually means the deployed program and this client disagree on the
    account version.
    """


class ProgramNotDeployed(BondingCurveError):
    """The configured program account does not exist on the ledger."""


class SettlementFailed(BondingCurveError):
    """The ledger rejected, errored or never confirmed a submitted transaction.

    ``detail`` carries the collaborator's raw failure payload. ``signature`` is
    set once the transaction has left the signer, in which case side effects
    may already have been applied on the ledger.
    """

    def __init__(self, message: str, detail: Any = None, signature: Optional[Signature] = None):
        super().__init__(message)
        self.detail = detail
        self.signature = signature


class FeeSettlementFailed(SettlementFailed):
    """A sell settled but the follow-up platform fee transfer did not.

    ``sell_signature`` identifies the sell that is already final on the
    ledger; ``signature`` is the fee transfer's, when it got that far.
    Retrying the whole sell would sell twice; only the fee leg is outstanding.
    """

    def __init__(
        self,
        message: str,
        sell_signature: Signature,
        fee_lamports: int,
        detail: Any = None,
        signature: Optional[Signature] = None,
    ):
        super().__init__(message, detail=detail, signature=signature)
        self.sell_signature = sell_signature
        self.fee_lamports = fee_lamports
