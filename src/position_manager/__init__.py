"""
Synthetic asset position manager.

Modular architecture:
- fixed_point.py: unsigned 18-decimal arithmetic
- fees/: cumulative fee multiplier and raw/adjusted conversion
- ledger.py: positions, aggregate counters, collateralization checks
- requests/: liveness-gated withdrawal and transfer requests
- settlement/: oracle consumption and expiry payout
- tokens/: token boundary with compensating effects
- manager.py: public operations (guarded, all-or-nothing)

Usage:
    from src.position_manager import deploy_local, fp
    from src.config import PositionManagerConfig

    deployment = deploy_local(PositionManagerConfig(expiration_timestamp=10_000))
    deployment.fund("alice", fp(1000))
    deployment.manager.create("alice", fp(150), fp(100))
"""

from .errors import PositionManagerError
from .events import EventLog
from .fees import FeeCharge, FeeModel, FeeStore
from .fixed_point import FixedPoint, ONE, ZERO, fp
from .guard import OperationGuard
from .ledger import PositionLedger
from .local import LocalDeployment, ManualClock, deploy_local
from .manager import PositionManager
from .settlement import IdentifierWhitelist, MockOracle
from .tokens import ExpandedToken, TokenFactory
from .types import ContractState, LedgerState, Position, PositionView

__all__ = [
    "ContractState",
    "EventLog",
    "ExpandedToken",
    "FeeCharge",
    "FeeModel",
    "FeeStore",
    "FixedPoint",
    "IdentifierWhitelist",
    "LedgerState",
    "LocalDeployment",
    "ManualClock",
    "MockOracle",
    "ONE",
    "OperationGuard",
    "Position",
    "PositionLedger",
    "PositionManager",
    "PositionManagerError",
    "PositionView",
    "TokenFactory",
    "ZERO",
    "deploy_local",
    "fp",
]
