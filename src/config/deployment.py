"""
Deployment files.

A deployment YAML fixes the construction parameters of one position manager
and its store fee schedule:

    deployment:
      expiration_timestamp: 1767225600
      withdrawal_liveness: 7200
      min_sponsor_tokens: "5"
      price_identifier: ETH/BTC
      synthetic:
        name: uETH Dec 2025
        symbol: uETH-DEC25
      collateral_symbol: WETH
      excess_token_beneficiary: "0xbeneficiary"
      financial_contracts_admin: "0xadmin"
    fees:
      store_address: "0xstore"
      fixed_fee_per_second_per_pfc: "0"
      weekly_delay_fee_per_second_per_pfc: "0"

Amounts may be written as YAML numbers or strings; they are kept as decimal
strings and never pass through float.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from .config import FeeConfig, PositionManagerConfig

DEPLOYMENTS_DIR = Path(__file__).resolve().parents[2] / "configs" / "deployments"


@dataclass
class DeploymentConfig:
    """One deployment: manager parameters plus fee schedule."""
    name: str
    position_manager: PositionManagerConfig
    fees: FeeConfig = field(default_factory=FeeConfig)

    def to_dict(self) -> Dict[str, Any]:
        pm = self.position_manager
        return {
            "name": self.name,
            "expiration_timestamp": pm.expiration_timestamp,
            "withdrawal_liveness": pm.withdrawal_liveness,
            "min_sponsor_tokens": pm.min_sponsor_tokens,
            "price_identifier": pm.price_identifier,
            "synthetic_symbol": pm.synthetic_symbol,
            "collateral_symbol": pm.collateral_symbol,
            "store_address": self.fees.store_address,
        }


def _amount(raw: Dict[str, Any], key: str, default: str) -> str:
    value = raw.get(key, default)
    if isinstance(value, float):
        # YAML already parsed it as binary float; go through repr to keep digits
        return repr(value)
    return str(value)


def parse_deployment_config(raw: Dict[str, Any], name: str = "deployment") -> DeploymentConfig:
    """
    Build a DeploymentConfig from parsed YAML.

    Args:
        raw: Parsed YAML mapping
        name: Deployment name used in reports

    Returns:
        DeploymentConfig

    Raises:
        ValueError: If required keys are missing or values are invalid
    """
    if not isinstance(raw, dict) or "deployment" not in raw:
        raise ValueError(f"Deployment '{name}' must have a top-level 'deployment' section")

    section = raw["deployment"] or {}
    if "expiration_timestamp" not in section:
        raise ValueError(
            f"Deployment '{name}' is missing 'expiration_timestamp' (no default - fail loud)"
        )
    synthetic = section.get("synthetic", {}) or {}

    try:
        position_manager = PositionManagerConfig(
            expiration_timestamp=int(section["expiration_timestamp"]),
            withdrawal_liveness=int(section.get("withdrawal_liveness", PositionManagerConfig.withdrawal_liveness)),
            min_sponsor_tokens=_amount(section, "min_sponsor_tokens", PositionManagerConfig.min_sponsor_tokens),
            price_identifier=str(section.get("price_identifier", PositionManagerConfig.price_identifier)),
            synthetic_name=str(synthetic.get("name", PositionManagerConfig.synthetic_name)),
            synthetic_symbol=str(synthetic.get("symbol", PositionManagerConfig.synthetic_symbol)),
            collateral_symbol=str(section.get("collateral_symbol", PositionManagerConfig.collateral_symbol)),
            excess_token_beneficiary=str(
                section.get("excess_token_beneficiary", PositionManagerConfig.excess_token_beneficiary)
            ),
            financial_contracts_admin=str(
                section.get("financial_contracts_admin", PositionManagerConfig.financial_contracts_admin)
            ),
            debug_check_invariants=bool(section.get("debug_check_invariants", False)),
        )
        fees_raw = raw.get("fees", {}) or {}
        fees = FeeConfig(
            store_address=str(fees_raw.get("store_address", FeeConfig.store_address)),
            fixed_fee_per_second_per_pfc=_amount(fees_raw, "fixed_fee_per_second_per_pfc", "0"),
            weekly_delay_fee_per_second_per_pfc=_amount(fees_raw, "weekly_delay_fee_per_second_per_pfc", "0"),
        )
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid deployment '{name}': {exc}") from exc

    return DeploymentConfig(name=name, position_manager=position_manager, fees=fees)


def load_deployment_config(path: Union[str, Path]) -> DeploymentConfig:
    """
    Load a deployment from a YAML file.

    A bare name is looked up in configs/deployments/ with .yml or .yaml.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the YAML is empty or invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        for ext in (".yml", ".yaml"):
            candidate = DEPLOYMENTS_DIR / f"{path}{ext}"
            if candidate.exists():
                config_path = candidate
                break
        else:
            raise FileNotFoundError(
                f"Deployment '{path}' not found. Available deployments: {list_deployments()}"
            )

    with open(config_path, 'r', encoding='utf-8') as f:
        raw = yaml.safe_load(f)

    if not raw:
        raise ValueError(f"Empty or invalid YAML in {config_path}")

    return parse_deployment_config(raw, name=config_path.stem)


def list_deployments() -> List[str]:
    """List deployment names in configs/deployments/."""
    if not DEPLOYMENTS_DIR.exists():
        return []
    return sorted(p.stem for p in DEPLOYMENTS_DIR.glob("*.y*ml"))
