"""Tests for the language table and subscription tiers."""

import pytest

from relaycord.configuration.languages import (
    LANGUAGE_CODES,
    get_language,
    get_language_by_channel_name,
    resolve_target_languages,
)
from relaycord.configuration.subscriptions import (
    SubscriptionTier,
    TierLimits,
    apply_limit_overrides,
    format_price,
    get_effective_tier_source,
    get_effective_user_limit,
    get_tier_limits,
)


class TestLanguages:

    def test_nine_languages(self):
        assert len(LANGUAGE_CODES) == 9
        assert get_language("PT-BR").deepl_target_code == "PT-BR"
        assert get_language("ZH").deepl_target_code == "ZH-HANS"
        assert get_language("xx") is None

    @pytest.mark.parametrize("name, code", [
        ("english", "EN"),
        ("🇪🇸︱spanish", "ES"),
        ("  Japanese ", "JA"),
    ])
    def test_channel_name_lookup(self, name, code):
        assert get_language_by_channel_name(name).code == code

    def test_channel_name_lookup_miss(self):
        assert get_language_by_channel_name("general") is None

    def test_targets_default_to_all_other_languages(self):
        targets = resolve_target_languages("EN", [])
        assert "EN" not in targets
        assert len(targets) == 8

    def test_targets_respect_enabled_subset(self):
        assert resolve_target_languages("ES", ["EN", "ES", "FR"]) == ["EN", "FR"]


class TestTiers:

    def test_unknown_tier_falls_back_to_free(self):
        assert get_tier_limits("enterprise") == get_tier_limits("free")

    @pytest.mark.parametrize("user_tier, guild_tier, limit, source", [
        ("free", "free", 5_000, "user"),
        ("pro", "free", 25_000, "user"),
        ("free", "premium", 100_000, "guild"),
        ("premium", "pro", 100_000, "user"),
    ])
    def test_effective_user_limit(self, user_tier, guild_tier, limit, source):
        assert get_effective_user_limit(user_tier, guild_tier) == limit
        assert get_effective_tier_source(user_tier, guild_tier) == source

    def test_overrides_touch_only_named_values(self):
        tiers = {
            "free": SubscriptionTier("free", "Free", 0, TierLimits(per_user=5_000, per_guild=25_000)),
        }

        apply_limit_overrides(tiers, {"free": {"per_guild": 40_000}, "unknown": {"per_user": 1}})

        assert tiers["free"].limits == TierLimits(per_user=5_000, per_guild=40_000)
        assert "unknown" not in tiers

    def test_format_price(self):
        assert format_price(0) == "Free"
        assert format_price(999) == "$9.99/month"
