"""
Claims files for a reward window.

Input (produced by the reward calculators):
    {
      "chainId": 42,
      "rewardToken": "uKIP-JUL",
      "windowIndex": 0,
      "totalRewardsDistributed": "15000000000000000000",
      "windowStart": 1614850539,
      "recipients": {
        "alice": {"amount": "1000000000000000000", "metaData": {"reason": ["Week 27"]}},
        ...
      }
    }

Output: the same header plus "merkleRoot" and "claims" (every recipient's
data with accountIndex, windowIndex and proof). Amounts are raw integer
strings throughout.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .helper import create_merkle_distribution_proofs


class Recipient(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    amount: str
    meta_data: Dict[str, Any] = Field(default_factory=dict, alias="metaData")

    @field_validator("amount")
    @classmethod
    def _check_amount(cls, value: str) -> str:
        if not value.isdigit():
            raise ValueError(f"amount must be a non-negative integer string, got {value!r}")
        return value


class WindowInput(BaseModel):
    """A reward window's recipients, as read from the input JSON."""

    model_config = ConfigDict(populate_by_name=True)

    chain_id: int = Field(alias="chainId")
    reward_token: str = Field(alias="rewardToken")
    window_index: int = Field(alias="windowIndex", ge=0)
    total_rewards_distributed: str = Field(alias="totalRewardsDistributed")
    window_start: int = Field(alias="windowStart")
    recipients: Dict[str, Recipient] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_total(self) -> "WindowInput":
        total = sum(int(r.amount) for r in self.recipients.values())
        if str(total) != self.total_rewards_distributed:
            raise ValueError(
                f"Wrong total rewards: recipients sum to {total}, "
                f"totalRewardsDistributed is {self.total_rewards_distributed}"
            )
        return self


def build_claims_file(window: WindowInput) -> Dict[str, Any]:
    """Merkle root and per-recipient proofs for a validated window."""
    recipients = {
        account: recipient.model_dump(by_alias=True)
        for account, recipient in window.recipients.items()
    }
    claims, merkle_root = create_merkle_distribution_proofs(recipients, window.window_index)
    return {
        "chainId": window.chain_id,
        "rewardToken": window.reward_token,
        "windowIndex": window.window_index,
        "totalRewardsDistributed": window.total_rewards_distributed,
        "windowStart": window.window_start,
        "merkleRoot": merkle_root,
        "claims": claims,
    }


def claims_file_name(window: WindowInput) -> str:
    return f"chain-id-{window.chain_id}-reward-window-{window.window_index}-claims-file.json"


def create_claims_for_window(
    input_path: Union[str, Path],
    output_dir: Optional[Union[str, Path]] = None,
) -> Path:
    """
    Read a window JSON, build its claims and write the claims file.

    Args:
        input_path: Window input JSON
        output_dir: Where to write (input file's directory if None)

    Returns:
        Path of the written claims file

    Raises:
        FileNotFoundError: Input file missing
        ValueError: Invalid JSON; pydantic.ValidationError (a ValueError)
            for missing keys, bad amounts or a wrong total
    """
    input_path = Path(input_path)
    if not input_path.exists():
        raise FileNotFoundError(f"Window input not found: {input_path}")

    with open(input_path, "r", encoding="utf-8") as f:
        window = WindowInput.model_validate(json.load(f))

    out_dir = Path(output_dir) if output_dir else input_path.parent
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / claims_file_name(window)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(build_claims_file(window), f, indent=2)
    return out_path
