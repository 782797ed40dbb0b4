"""
TipVault Staking Module.

Custody of staked principal, reward computation and unbonding.
"""

from tipvault.core.staking.facility import (
    StakingFacility,
    StakeCommitment,
    StakeTypeConfig,
    DEFAULT_STAKE_TYPES,
    MAX_STAKE_TYPES,
)

__all__ = [
    "StakingFacility",
    "StakeCommitment",
    "StakeTypeConfig",
    "DEFAULT_STAKE_TYPES",
    "MAX_STAKE_TYPES",
]
