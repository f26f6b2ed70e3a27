"""
Error taxonomy for the position manager.

Every failure aborts the whole operation with no state change. Errors carry a
stable ``code`` (used in logs and by callers that branch on failures) and a
``category``:

- validation: bad amounts, size/ratio checks, unknown positions
- state: conflicting or missing withdrawal/transfer requests, contract state
- external: token transfer/mint/burn failures (ledger is rolled back)
- oracle: settlement price not yet available, unsupported identifier
- concurrency: re-entrant call into the manager
- arithmetic: fixed-point underflow/overflow/division by zero
"""


class PositionManagerError(Exception):
    """Base class for all position manager failures."""
    code = "POSITION_MANAGER_ERROR"
    category = "validation"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "category": self.category,
            "message": self.message,
        }


# ─────────────────────────────────────────────────────────────────────────────
# Arithmetic
# ─────────────────────────────────────────────────────────────────────────────

class FixedPointError(PositionManagerError):
    code = "FIXED_POINT_ERROR"
    category = "arithmetic"


class Underflow(FixedPointError):
    code = "UNDERFLOW"


class DivideByZero(FixedPointError):
    code = "DIVIDE_BY_ZERO"


class FixedPointOverflow(FixedPointError):
    code = "OVERFLOW"


# ─────────────────────────────────────────────────────────────────────────────
# Validation
# ─────────────────────────────────────────────────────────────────────────────

class InvalidAmount(PositionManagerError):
    code = "INVALID_AMOUNT"


class InvalidTokenAmount(PositionManagerError):
    code = "INVALID_TOKEN_AMOUNT"


class BelowMinimumSize(PositionManagerError):
    code = "BELOW_MINIMUM_SIZE"


class InsufficientCollateral(PositionManagerError):
    code = "INSUFFICIENT_COLLATERAL"


class BelowGlobalRatio(PositionManagerError):
    code = "BELOW_GLOBAL_RATIO"


class SponsorAlreadyHasPosition(PositionManagerError):
    code = "SPONSOR_ALREADY_HAS_POSITION"


class PositionNotFound(PositionManagerError):
    code = "POSITION_NOT_FOUND"


# ─────────────────────────────────────────────────────────────────────────────
# State conflicts
# ─────────────────────────────────────────────────────────────────────────────

class StateConflictError(PositionManagerError):
    code = "STATE_CONFLICT"
    category = "state"


class PendingWithdrawal(StateConflictError):
    code = "PENDING_WITHDRAWAL"


class NoPendingWithdrawal(StateConflictError):
    code = "NO_PENDING_WITHDRAWAL"


class RequestNotYetPassed(StateConflictError):
    code = "REQUEST_NOT_YET_PASSED"


class PendingTransfer(StateConflictError):
    code = "PENDING_TRANSFER"


class NoPendingTransfer(StateConflictError):
    code = "NO_PENDING_TRANSFER"


class InvalidTransferRequest(StateConflictError):
    code = "INVALID_TRANSFER_REQUEST"


class RequestExpiresPostExpiry(StateConflictError):
    code = "REQUEST_EXPIRES_POST_EXPIRY"


class ContractNotOpen(StateConflictError):
    code = "CONTRACT_NOT_OPEN"


class ContractExpired(StateConflictError):
    code = "CONTRACT_EXPIRED"


class ContractNotExpired(StateConflictError):
    code = "CONTRACT_NOT_EXPIRED"


class Unauthorized(StateConflictError):
    code = "UNAUTHORIZED"


# ─────────────────────────────────────────────────────────────────────────────
# External effects
# ─────────────────────────────────────────────────────────────────────────────

class ExternalEffectError(PositionManagerError):
    code = "EXTERNAL_EFFECT_FAILED"
    category = "external"


class TransferFailed(ExternalEffectError):
    code = "TRANSFER_FAILED"


class MintFailed(ExternalEffectError):
    code = "MINT_FAILED"


# ─────────────────────────────────────────────────────────────────────────────
# Oracle
# ─────────────────────────────────────────────────────────────────────────────

class OracleError(PositionManagerError):
    code = "ORACLE_ERROR"
    category = "oracle"


class UnresolvedOraclePrice(OracleError):
    code = "UNRESOLVED_ORACLE_PRICE"


class UnsupportedPriceIdentifier(OracleError):
    code = "UNSUPPORTED_PRICE_IDENTIFIER"


# ─────────────────────────────────────────────────────────────────────────────
# Concurrency
# ─────────────────────────────────────────────────────────────────────────────

class ReentrancyError(PositionManagerError):
    code = "REENTRANT_CALL"
    category = "concurrency"
