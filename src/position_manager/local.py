"""
Local in-memory deployment.

Wires a PositionManager to a fresh collateral token, a MockOracle, an
identifier whitelist and a manually advanced clock. Used by the CLI demo and
by tests.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..config.config import FeeConfig, PositionManagerConfig
from ..config.constants import DEFAULT_PRICE_IDENTIFIERS
from ..utils.logger import SynthLogger
from .fees import FeeStore
from .fixed_point import FixedPoint
from .manager import PositionManager
from .settlement import IdentifierWhitelist, MockOracle
from .tokens import ExpandedToken, TokenFactory
from .types import Address

COLLATERAL_OWNER = "collateral-owner"


@dataclass
class ManualClock:
    """Clock advanced explicitly; callable as get_time()."""
    now: int = 0

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError(f"cannot move the clock backwards by {seconds}s")
        self.now += seconds
        return self.now

    def set(self, timestamp: int) -> int:
        if timestamp < self.now:
            raise ValueError(f"cannot move the clock back from {self.now} to {timestamp}")
        self.now = timestamp
        return self.now


@dataclass
class LocalDeployment:
    """A manager plus every collaborator it was built with."""
    manager: PositionManager
    collateral_token: ExpandedToken
    oracle: MockOracle
    whitelist: IdentifierWhitelist
    clock: ManualClock
    token_factory: TokenFactory = field(default_factory=TokenFactory)

    @property
    def synthetic_token(self) -> ExpandedToken:
        return self.manager.synthetic_token

    def fund(self, account: Address, amount: FixedPoint) -> None:
        """Mint collateral to an account."""
        self.collateral_token.mint(COLLATERAL_OWNER, account, amount)

    def push_settlement_price(self, price: FixedPoint, negative: bool = False) -> None:
        """Resolve the oracle price at the manager's expiration timestamp."""
        raw = -price.raw if negative else price.raw
        self.oracle.push_price(
            self.manager.config.price_identifier,
            self.manager.expiration_timestamp,
            raw,
        )


def deploy_local(
    config: PositionManagerConfig,
    fee_config: Optional[FeeConfig] = None,
    clock: Optional[ManualClock] = None,
    identifiers: Optional[Iterable[str]] = None,
    logger: Optional[SynthLogger] = None,
) -> LocalDeployment:
    """
    Build an in-memory deployment.

    Args:
        config: Manager parameters (expiration must be after clock.now)
        fee_config: Store fee schedule (no fees if None)
        clock: Clock to use (starts at 0 if None)
        identifiers: Whitelisted identifiers (defaults plus config's)
        logger: Logger for the manager

    Returns:
        LocalDeployment
    """
    clock = clock or ManualClock()
    whitelist = IdentifierWhitelist.of(identifiers or DEFAULT_PRICE_IDENTIFIERS)
    whitelist.add_supported_identifier(config.price_identifier)

    collateral_token = ExpandedToken(
        f"Collateral {config.collateral_symbol}",
        config.collateral_symbol,
        owner=COLLATERAL_OWNER,
    )
    collateral_token.add_minter(COLLATERAL_OWNER, caller=COLLATERAL_OWNER)

    oracle = MockOracle()
    factory = TokenFactory()
    manager = PositionManager(
        config,
        collateral_token,
        oracle,
        whitelist,
        token_factory=factory,
        fee_store=FeeStore.from_config(fee_config) if fee_config else None,
        get_time=clock,
        logger=logger,
    )
    return LocalDeployment(
        manager=manager,
        collateral_token=collateral_token,
        oracle=oracle,
        whitelist=whitelist,
        clock=clock,
        token_factory=factory,
    )
