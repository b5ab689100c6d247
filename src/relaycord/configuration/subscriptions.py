"""
Subscription tiers and monthly character limits.

Guild tiers carry both a per-member and a per-guild budget. Personal tiers only
carry a per-member budget that follows the user into every guild. Per-member
accounting uses whichever of the two per-member limits is higher; guild budgets
are never raised by a member's personal plan.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Literal

DEFAULT_TIER = "free"


@dataclass(frozen=True, slots=True)
class TierLimits:
    """Monthly character budgets for one tier."""

    per_user: int
    per_guild: int


@dataclass(frozen=True, slots=True)
class SubscriptionTier:
    id: str
    name: str
    price_cents: int
    limits: TierLimits
    is_user_tier: bool = False


GUILD_TIERS: Dict[str, SubscriptionTier] = {
    "free": SubscriptionTier("free", "Free", 0, TierLimits(per_user=5_000, per_guild=25_000)),
    "pro": SubscriptionTier("pro", "Pro", 999, TierLimits(per_user=25_000, per_guild=150_000)),
    "premium": SubscriptionTier("premium", "Premium", 2499, TierLimits(per_user=100_000, per_guild=500_000)),
}

USER_TIERS: Dict[str, SubscriptionTier] = {
    "free": SubscriptionTier("free", "Free", 0, TierLimits(per_user=5_000, per_guild=0), is_user_tier=True),
    "pro": SubscriptionTier("pro", "Pro", 499, TierLimits(per_user=25_000, per_guild=0), is_user_tier=True),
    "premium": SubscriptionTier("premium", "Premium", 1249, TierLimits(per_user=100_000, per_guild=0), is_user_tier=True),
}


def apply_limit_overrides(
    tiers: Dict[str, SubscriptionTier],
    overrides: Mapping[str, Mapping[str, int]],
) -> None:
    """
    Replace tier limits in place from a ``{tier: {per_user, per_guild}}`` mapping.

    Unknown tiers and missing keys are ignored so a partial YAML section only
    touches the values it names.
    """
    for tier_id, values in overrides.items():
        tier = tiers.get(tier_id)
        if tier is None or not isinstance(values, Mapping):
            continue
        limits = TierLimits(
            per_user=int(values.get("per_user", tier.limits.per_user)),
            per_guild=int(values.get("per_guild", tier.limits.per_guild)),
        )
        tiers[tier_id] = SubscriptionTier(tier.id, tier.name, tier.price_cents, limits, tier.is_user_tier)


def get_tier_limits(tier: str) -> TierLimits:
    """Limits for a guild tier, falling back to the free tier for unknown ids."""
    return (GUILD_TIERS.get(tier) or GUILD_TIERS[DEFAULT_TIER]).limits


def get_user_tier_limits(tier: str) -> TierLimits:
    return (USER_TIERS.get(tier) or USER_TIERS[DEFAULT_TIER]).limits


def get_effective_user_limit(user_tier: str, guild_tier: str) -> int:
    """Per-member monthly limit: the higher of the personal and the guild plan."""
    return max(get_user_tier_limits(user_tier).per_user, get_tier_limits(guild_tier).per_user)


def get_effective_tier_source(user_tier: str, guild_tier: str) -> Literal["user", "guild"]:
    """Which plan provides the effective per-member limit (ties go to the personal plan)."""
    if get_user_tier_limits(user_tier).per_user >= get_tier_limits(guild_tier).per_user:
        return "user"
    return "guild"


def format_price(cents: int) -> str:
    if cents == 0:
        return "Free"
    return f"${cents / 100:.2f}/month"
