"""
stakepools/config.py

Configuration constants and the engine-wide configuration dataclass.

Resolution order for engine settings:
    1. Programmatic values (EngineConfig(...) / from_dict)
    2. Environment variables: STAKEPOOLS_<FIELD_NAME>
    3. Defaults below
"""

import logging
import os
from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, Optional

from .errors import ConfigError

logger = logging.getLogger("stakepools.config")


# Fixed-point scale for the reward-per-share accumulator
SCALE = 10**12

# Custody account the engine holds staked and reward assets under
ENGINE_ADDRESS = "stakepools:engine"

# Read API defaults
DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 8545

# Event log retention
DEFAULT_EVENT_LOG_SIZE = 10_000

ENV_PREFIX = "STAKEPOOLS_"

# Engine defaults
DEFAULT_BASE_REWARD_RATE = 100
DEFAULT_MAX_MULTIPLIER = 50
DEFAULT_MULTIPLIER_RAMP_DURATION = 30 * 24 * 60 * 60   # 30 days
DEFAULT_NFT_BOOST_RATE = 10                            # percent
DEFAULT_REFERRAL_BONUS = 10 * 10**18
DEFAULT_REFEREE_BONUS = 5 * 10**18


@dataclass
class EngineConfig:
    """
    Engine-wide reward configuration.

    Created once at initialization and mutated only through the
    administrator-gated setters on StakingEngine. Every accrual and
    settlement reads it by reference.
    """
    base_reward_rate: int = DEFAULT_BASE_REWARD_RATE
    max_multiplier: int = DEFAULT_MAX_MULTIPLIER
    multiplier_ramp_duration: int = DEFAULT_MULTIPLIER_RAMP_DURATION
    nft_boost_rate: int = DEFAULT_NFT_BOOST_RATE
    referral_bonus: int = DEFAULT_REFERRAL_BONUS
    referee_bonus: int = DEFAULT_REFEREE_BONUS

    def validate(self) -> None:
        """
        Check the configuration is usable.

        Raises:
            ConfigError: If a divisor is not positive or any value is negative
        """
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigError(f"{f.name} must be an integer, got {value!r}")
            if value < 0:
                raise ConfigError(f"{f.name} must not be negative, got {value}")
        if self.base_reward_rate == 0:
            raise ConfigError("base_reward_rate must be positive")
        if self.multiplier_ramp_duration == 0:
            raise ConfigError("multiplier_ramp_duration must be positive")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Create from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: int(v) for k, v in data.items() if k in known})

    @classmethod
    def from_env(
        cls,
        prefix: str = ENV_PREFIX,
        environ: Optional[Dict[str, str]] = None,
    ) -> "EngineConfig":
        """
        Build a configuration from environment variables over defaults.

        Args:
            prefix: Variable name prefix
            environ: Mapping to read from (default: os.environ)

        Returns:
            EngineConfig with any valid overrides applied
        """
        env = os.environ if environ is None else environ
        config = cls()
        for f in fields(cls):
            var = f"{prefix}{f.name.upper()}"
            raw = env.get(var)
            if raw is None or raw == "":
                continue
            try:
                setattr(config, f.name, int(raw))
                logger.info(f"Config {f.name} from env: {raw}")
            except ValueError:
                logger.warning(f"Invalid {var}={raw!r}, using default")
        return config
