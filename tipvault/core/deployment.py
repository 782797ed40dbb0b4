"""
Deployment - one wired instance of the TipVault engine.

Builds the shared runtime, the token, the staking facility and the
account registry with well-known system addresses, and moves the whole
state in and out of a StorageManager.

    platform ──mints──► token ◄──custody── staking facility
                          ▲                      ▲
                          └──── accounts ────────┘
                              (via registry)
"""

from dataclasses import dataclass
from typing import Dict, Optional

from tipvault.core.account.merchant_account import AccountState
from tipvault.core.config import EngineConfig
from tipvault.core.registry.account_registry import AccountRegistry
from tipvault.core.runtime import Event, Runtime
from tipvault.core.staking.facility import StakeCommitment, StakeTypeConfig, StakingFacility
from tipvault.core.storage.storage_manager import StorageManager
from tipvault.core.token.ledger import TokenLedger
from tipvault.crypto import address_from_label, bytes_to_hex, hex_to_bytes, short_hex
from tipvault.utils.logger import get_logger

logger = get_logger("deployment")


# Well-known system identities
PLATFORM_ADDRESS = address_from_label("tipvault.platform")
TOKEN_ADDRESS = address_from_label("tipvault.token")
FACILITY_ADDRESS = address_from_label("tipvault.staking")
REGISTRY_ADDRESS = address_from_label("tipvault.registry")


@dataclass
class Deployment:
    """
    Runtime plus every component operating on it.

    Attributes:
        config: Engine configuration shared by all components
        runtime: Clock, event log and rollback
        platform: Platform identity (token minter, facility owner)
        token: Token ledger
        facility: Staking facility
        registry: Account registry
    """
    config: EngineConfig
    runtime: Runtime
    platform: bytes
    token: TokenLedger
    facility: StakingFacility
    registry: AccountRegistry

    @classmethod
    def create(
        cls,
        config: Optional[EngineConfig] = None,
        platform: Optional[bytes] = None,
        start_time: int = 0,
        stake_types: Optional[Dict[int, StakeTypeConfig]] = None,
    ) -> "Deployment":
        """
        Wire a fresh deployment.

        Args:
            config: Engine configuration (defaults to EngineConfig())
            platform: Platform identity (defaults to PLATFORM_ADDRESS)
            start_time: Initial clock value
            stake_types: Initial stake-type table (defaults to DEFAULT_STAKE_TYPES)
        """
        config = config or EngineConfig()
        platform = platform or PLATFORM_ADDRESS

        runtime = Runtime(start_time=start_time)
        token = TokenLedger(runtime, TOKEN_ADDRESS, minter=platform, decimals=config.token_decimals)
        facility = StakingFacility(
            runtime, token, FACILITY_ADDRESS, owner=platform, config=config, stake_types=stake_types
        )
        registry = AccountRegistry(runtime, token, facility, REGISTRY_ADDRESS, platform, config=config)

        logger.info(f"Deployment created (platform {short_hex(platform)}, t={start_time})")
        return cls(
            config=config,
            runtime=runtime,
            platform=platform,
            token=token,
            facility=facility,
            registry=registry,
        )

    # =========================================================================
    # Convenience
    # =========================================================================

    def mint(self, to: bytes, amount: int) -> None:
        """Mint tokens as the platform."""
        self.token.mint(self.platform, to, amount)

    def fund_rewards(self, amount: int) -> None:
        """Mint `amount` to the platform and move it into the reward reserve."""
        with self.runtime.atomic("deployment.fund_rewards"):
            self.mint(self.platform, amount)
            self.token.approve(self.platform, self.facility.address, amount)
            self.facility.fund_rewards(self.platform, amount)

    def stats(self) -> dict:
        return {
            "now": self.runtime.now,
            "events": len(self.runtime.events),
            "token": self.token.stats(),
            "facility": self.facility.stats(),
            "registry": self.registry.stats(),
        }

    # =========================================================================
    # Persistence
    # =========================================================================

    def save(self, storage: StorageManager) -> None:
        """Write the full deployment state to `storage`."""
        meta = {
            "now": self.runtime.now,
            "platform": bytes_to_hex(self.platform),
            "total_supply": self.token.total_supply,
            "next_stake_id": self.facility.next_stake_id,
            "reward_reserve": self.facility.reward_reserve,
            "total_staked": self.facility.total_staked,
            "default_base_fee": self.registry.default_base_fee,
        }
        storage.save_snapshot(
            meta=meta,
            accounts=[a.state.to_dict() for a in self.registry.list_accounts()],
            balances=self.token.balances,
            allowances=self.token.allowances,
            stakes=[s.to_dict() for s in self.facility.stakes.values()],
            stake_types={
                t: (c.reward_modifier, c.duration_modifier, c.duration)
                for t, c in self.facility.stake_types.items()
            },
            events=[e.to_dict() for e in self.runtime.events],
        )

    @classmethod
    def load(cls, storage: StorageManager, config: Optional[EngineConfig] = None) -> "Deployment":
        """
        Rebuild a deployment from a snapshot written by save().

        Raises:
            ValueError: storage holds no snapshot
        """
        if storage.is_empty():
            raise ValueError(f"No deployment stored at {storage.db_path}")

        stake_types = {
            t: StakeTypeConfig(reward_modifier=r, duration_modifier=m, duration=d)
            for t, (r, m, d) in storage.load_stake_types().items()
        }
        deployment = cls.create(
            config=config,
            platform=hex_to_bytes(storage.get_meta("platform")),
            start_time=storage.get_meta_int("now"),
            stake_types=stake_types,
        )

        token = deployment.token
        token.balances = storage.load_balances()
        token.allowances = storage.load_allowances()
        token.total_supply = storage.get_meta_int("total_supply")

        facility = deployment.facility
        facility.stakes = {
            record["stake_id"]: StakeCommitment.from_dict(record)
            for record in storage.load_stakes()
        }
        facility.next_stake_id = storage.get_meta_int("next_stake_id", 1)
        facility.reward_reserve = storage.get_meta_int("reward_reserve")
        facility.total_staked = storage.get_meta_int("total_staked")

        registry = deployment.registry
        registry.default_base_fee = storage.get_meta_int("default_base_fee", deployment.config.default_base_fee)
        for record in storage.load_accounts():
            registry.adopt(AccountState.from_dict(record))

        deployment.runtime.events = [Event.from_dict(record) for record in storage.load_events()]

        logger.info(
            f"Deployment loaded: {len(registry.accounts)} accounts, "
            f"{len(facility.stakes)} stakes, t={deployment.runtime.now}"
        )
        return deployment
