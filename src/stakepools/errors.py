"""
stakepools/errors.py

Exception types raised by the staking engine.

Every failure aborts the whole operation with no state change and no
asset movement. Callers catch StakingError (or a subclass) and resubmit.
"""


class StakingError(Exception):
    """Base class for all staking engine failures."""
    code = "staking_error"


class Unauthorized(StakingError):
    """Caller lacks the required capability."""
    code = "unauthorized"


class InvalidPoolId(StakingError):
    """Pool identifier is out of range."""
    code = "invalid_pool_id"


class ZeroAmount(StakingError):
    """Amount must be positive."""
    code = "zero_amount"


class InsufficientStake(StakingError):
    """Requested amount exceeds the staked principal."""
    code = "insufficient_stake"


class StakeLocked(StakingError):
    """Principal is still inside its lock period."""
    code = "stake_locked"


class NoStakedAmount(StakingError):
    """Account has nothing staked in the pool."""
    code = "no_staked_amount"


class ReferrerAlreadySet(StakingError):
    """Account already has a referrer."""
    code = "referrer_already_set"


class SelfReferral(StakingError):
    """An account cannot refer itself."""
    code = "self_referral"


class ContractPaused(StakingError):
    """New stakes are rejected while paused."""
    code = "contract_paused"


class AssetTransferFailed(StakingError):
    """External asset collaborator refused or failed a transfer."""
    code = "asset_transfer_failed"


class ReentrantCall(StakingError):
    """A guarded operation was entered while another one is running."""
    code = "reentrant_call"


class AlreadyInitialized(StakingError):
    """Engine configuration can only be set once."""
    code = "already_initialized"


class NotInitialized(StakingError):
    """Engine has not been initialized yet."""
    code = "not_initialized"


class AccountingUnderflow(StakingError):
    """Settlement produced a negative pending reward."""
    code = "accounting_underflow"


class ConfigError(StakingError):
    """Configuration value is invalid."""
    code = "config_error"
