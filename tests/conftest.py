"""
Pytest configuration shared by every test module.
"""

import pytest

from src.config import FeeConfig, PositionManagerConfig
from src.position_manager import LocalDeployment, ManualClock, deploy_local, fp
from src.utils.logger import setup_logger

START_TIME = 1_000
EXPIRATION = 100_000
LIVENESS = 1_000
SPONSORS = ("alice", "bob", "carol")


@pytest.fixture(autouse=True)
def isolated_logger(tmp_path):
    """Fresh logger writing into the test's temp dir."""
    return setup_logger(log_dir=str(tmp_path / "logs"), log_level="DEBUG")


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(now=START_TIME)


@pytest.fixture
def pm_config() -> PositionManagerConfig:
    """Liveness 1000s, minimum position 10 tokens, invariants checked after every operation."""
    return PositionManagerConfig(
        expiration_timestamp=EXPIRATION,
        withdrawal_liveness=LIVENESS,
        min_sponsor_tokens="10",
        debug_check_invariants=True,
    )


@pytest.fixture
def fee_config() -> FeeConfig:
    """1 bp per second: 1000 seconds charges 10% of the pool."""
    return FeeConfig(fixed_fee_per_second_per_pfc="0.0001")


def _funded(local: LocalDeployment) -> LocalDeployment:
    for sponsor in SPONSORS:
        local.fund(sponsor, fp(10_000))
    return local


@pytest.fixture
def deployment(pm_config, clock) -> LocalDeployment:
    """Fee-free deployment with funded sponsors."""
    return _funded(deploy_local(pm_config, clock=clock))


@pytest.fixture
def fee_deployment(pm_config, fee_config, clock) -> LocalDeployment:
    """Deployment charging the store fee in fee_config."""
    return _funded(deploy_local(pm_config, fee_config=fee_config, clock=clock))


@pytest.fixture
def manager(deployment):
    return deployment.manager
