"""Tests for monthly usage accounting, rollover and streaks."""

import datetime

import pytest

from relaycord.configuration.languages import LANGUAGE_CODES, count_target_languages
from relaycord.datatypes.discord_datatypes import GuildID, UserID
from relaycord.repositories.global_user_repo import GlobalUserRepository
from relaycord.usage.usage_ledger import (
    UsageLedger,
    compute_streak,
    is_approaching_limit,
    needs_rollover,
)

from seed_data import seed_member, seed_tenant

GUILD = 111
USER = 222
ALL_CHANNELS = {code: 1000 + index for index, code in enumerate(LANGUAGE_CODES)}


class TestComputeStreak:
    """Daily streak transitions."""

    def test_first_activity_starts_streak(self):
        state = compute_streak(0, 0, None, datetime.date(2026, 5, 1))
        assert state.current_streak == 1
        assert state.longest_streak == 1
        assert state.last_active_date == datetime.date(2026, 5, 1)

    def test_same_day_is_unchanged(self):
        state = compute_streak(4, 6, datetime.date(2026, 5, 1), datetime.date(2026, 5, 1))
        assert state.current_streak == 4
        assert state.longest_streak == 6

    def test_consecutive_day_extends_and_raises_longest(self):
        state = compute_streak(6, 6, datetime.date(2026, 5, 1), datetime.date(2026, 5, 2))
        assert state.current_streak == 7
        assert state.longest_streak == 7

    def test_gap_resets_to_one_but_keeps_longest(self):
        state = compute_streak(9, 12, datetime.date(2026, 5, 1), datetime.date(2026, 5, 5))
        assert state.current_streak == 1
        assert state.longest_streak == 12
        assert state.last_active_date == datetime.date(2026, 5, 5)

    def test_stored_date_in_future_keeps_it(self):
        state = compute_streak(3, 3, datetime.date(2026, 5, 3), datetime.date(2026, 5, 2))
        assert state.current_streak == 3
        assert state.last_active_date == datetime.date(2026, 5, 3)


class TestRolloverRules:

    def test_previous_month_needs_rollover(self):
        assert needs_rollover(datetime.date(2026, 4, 1), datetime.date(2026, 5, 1))

    def test_current_month_does_not(self):
        assert not needs_rollover(datetime.date(2026, 5, 1), datetime.date(2026, 5, 31))

    def test_missing_date_needs_rollover(self):
        assert needs_rollover(None, datetime.date(2026, 5, 1))


class TestApproachingLimit:

    def test_inside_warning_band(self):
        assert is_approaching_limit(4000, 5000)
        assert is_approaching_limit(4999, 5000)

    def test_below_band_or_at_limit(self):
        assert not is_approaching_limit(3999, 5000)
        assert not is_approaching_limit(5000, 5000)

    def test_zero_limit_never_warns(self):
        assert not is_approaching_limit(10, 0)


class TestCheckLimits:

    async def test_user_budget_is_inclusive(self, connection_manager):
        await seed_tenant(connection_manager, GUILD, ALL_CHANNELS)
        await seed_member(connection_manager, GUILD, USER, monthly_usage=4900)
        ledger = UsageLedger(connection_manager)
        tenant = await ledger.get_tenant(GuildID(GUILD))
        link = await ledger.get_link(GuildID(GUILD), UserID(USER))

        assert ledger.check_limits(tenant, link, 100).user_allowed
        assert not ledger.check_limits(tenant, link, 101).user_allowed

    async def test_guild_budget_blocks_independently(self, connection_manager):
        await seed_tenant(connection_manager, GUILD, ALL_CHANNELS, monthly_usage=24_900)
        await seed_member(connection_manager, GUILD, USER)
        ledger = UsageLedger(connection_manager)
        tenant = await ledger.get_tenant(GuildID(GUILD))
        link = await ledger.get_link(GuildID(GUILD), UserID(USER))

        check = ledger.check_limits(tenant, link, 200)
        assert check.user_allowed
        assert not check.guild_allowed
        assert check.guild_remaining == 100

    async def test_personal_plan_raises_member_limit_only(self, connection_manager):
        await seed_tenant(connection_manager, GUILD, ALL_CHANNELS)
        await seed_member(connection_manager, GUILD, USER)
        ledger = UsageLedger(connection_manager)
        tenant = await ledger.get_tenant(GuildID(GUILD))
        link = await ledger.get_link(GuildID(GUILD), UserID(USER))

        check = ledger.check_limits(tenant, link, 10, user_tier="pro")
        assert check.user_limit == 25_000
        assert check.guild_limit == 25_000
        assert check.limit_source == "user"

    async def test_guild_plan_wins_when_higher(self, connection_manager):
        await seed_tenant(connection_manager, GUILD, ALL_CHANNELS, tier="premium")
        await seed_member(connection_manager, GUILD, USER)
        ledger = UsageLedger(connection_manager)
        tenant = await ledger.get_tenant(GuildID(GUILD))
        link = await ledger.get_link(GuildID(GUILD), UserID(USER))

        check = ledger.check_limits(tenant, link, 10, user_tier="free")
        assert check.user_limit == 100_000
        assert check.limit_source == "guild"


class TestCommitRelay:

    async def test_hundred_characters_into_eight_languages(self, connection_manager):
        """A 100 character English message in a guild with all nine languages costs 800."""
        await seed_tenant(connection_manager, GUILD, ALL_CHANNELS)
        await seed_member(connection_manager, GUILD, USER)
        ledger = UsageLedger(connection_manager)
        tenant = await ledger.get_tenant(GuildID(GUILD))
        link = await ledger.get_link(GuildID(GUILD), UserID(USER))
        await ledger.sync_global_user(link, "learner", None)

        cost = len("a" * 100) * count_target_languages("EN", tenant.enabled_languages)
        targets = [code for code in LANGUAGE_CODES if code != "EN"]
        charge = await ledger.commit_relay(tenant, link, "EN", targets, cost)

        assert cost == 800
        assert charge.guild_usage == 800
        assert charge.link.monthly_usage == 800
        assert charge.link.total_translations == 1
        assert charge.link.current_streak == 1
        assert charge.link.longest_streak == 1

        async with connection_manager.read() as conn:
            global_user = await GlobalUserRepository.get_by_user_id(conn, UserID(USER))
        assert global_user.total_translations_all_time == 1
        assert global_user.total_characters_all_time == 800

        entries = await ledger.get_recent_usage(GuildID(GUILD))
        assert len(entries) == 1
        assert entries[0].source_language == "EN"
        assert entries[0].target_languages.split(",") == targets
        assert entries[0].character_count == 800

    async def test_consecutive_days_build_streak(self, connection_manager):
        await seed_tenant(connection_manager, GUILD, ALL_CHANNELS)
        await seed_member(connection_manager, GUILD, USER)
        ledger = UsageLedger(connection_manager)
        tenant = await ledger.get_tenant(GuildID(GUILD))
        link = await ledger.get_link(GuildID(GUILD), UserID(USER))

        day_one = datetime.datetime(2026, 5, 1, 12, tzinfo=datetime.timezone.utc)
        first = await ledger.commit_relay(tenant, link, "EN", ["ES"], 10, now=day_one)
        second = await ledger.commit_relay(
            tenant, first.link, "EN", ["ES"], 10, now=day_one + datetime.timedelta(days=1)
        )

        assert second.link.current_streak == 2
        assert second.link.longest_streak == 2
        assert second.link.total_translations == 2

    async def test_record_achievements_merges_without_duplicates(self, connection_manager):
        await seed_tenant(connection_manager, GUILD, ALL_CHANNELS)
        await seed_member(connection_manager, GUILD, USER)
        ledger = UsageLedger(connection_manager)
        link = await ledger.get_link(GuildID(GUILD), UserID(USER))

        await ledger.record_achievements(link, ["first_words"])
        merged = await ledger.record_achievements(link, ["first_words", "streak_starter"])

        assert merged == ["first_words", "streak_starter"]
        stored = await ledger.get_link(GuildID(GUILD), UserID(USER))
        assert stored.achievements == ["first_words", "streak_starter"]


class TestRollOver:

    async def test_resets_both_counters_on_new_month(self, connection_manager):
        january = datetime.date(2026, 1, 1)
        await seed_tenant(connection_manager, GUILD, ALL_CHANNELS, monthly_usage=5000, reset_date=january)
        await seed_member(connection_manager, GUILD, USER, reset_date=january, monthly_usage=300)
        ledger = UsageLedger(connection_manager)
        tenant = await ledger.get_tenant(GuildID(GUILD))
        link = await ledger.get_link(GuildID(GUILD), UserID(USER))

        tenant, link = await ledger.roll_over(tenant, link, today=datetime.date(2026, 3, 15))

        assert tenant.monthly_usage == 0
        assert tenant.usage_reset_date == datetime.date(2026, 3, 1)
        assert link.monthly_usage == 0
        assert link.usage_reset_date == datetime.date(2026, 3, 1)

    async def test_second_rollover_in_same_month_is_noop(self, connection_manager):
        """A stale copy racing past the boundary must not wipe usage charged since the reset."""
        january = datetime.date(2026, 1, 1)
        await seed_tenant(connection_manager, GUILD, ALL_CHANNELS, monthly_usage=5000, reset_date=january)
        await seed_member(connection_manager, GUILD, USER, reset_date=january, monthly_usage=300)
        ledger = UsageLedger(connection_manager)
        stale_tenant = await ledger.get_tenant(GuildID(GUILD))
        stale_link = await ledger.get_link(GuildID(GUILD), UserID(USER))

        tenant, link = await ledger.roll_over(stale_tenant, stale_link, today=datetime.date(2026, 3, 15))
        march = datetime.datetime(2026, 3, 15, 9, tzinfo=datetime.timezone.utc)
        await ledger.commit_relay(tenant, link, "EN", ["ES"], 40, now=march)

        tenant, link = await ledger.roll_over(stale_tenant, stale_link, today=datetime.date(2026, 3, 20))

        assert tenant.monthly_usage == 40
        assert link.monthly_usage == 40

    async def test_current_month_returns_same_objects(self, connection_manager):
        await seed_tenant(connection_manager, GUILD, ALL_CHANNELS, monthly_usage=10)
        await seed_member(connection_manager, GUILD, USER, monthly_usage=10)
        ledger = UsageLedger(connection_manager)
        tenant = await ledger.get_tenant(GuildID(GUILD))
        link = await ledger.get_link(GuildID(GUILD), UserID(USER))

        same_tenant, same_link = await ledger.roll_over(tenant, link)

        assert same_tenant is tenant
        assert same_link is link


class TestSyncGlobalUser:

    async def test_creates_and_links_then_refreshes_profile(self, connection_manager):
        await seed_tenant(connection_manager, GUILD, ALL_CHANNELS)
        await seed_member(connection_manager, GUILD, USER)
        ledger = UsageLedger(connection_manager)
        link = await ledger.get_link(GuildID(GUILD), UserID(USER))

        created = await ledger.sync_global_user(link, "learner", "abc")
        assert link.global_user_id == created.id

        refreshed = await ledger.sync_global_user(link, "renamed", "def")
        assert refreshed.id == created.id
        assert refreshed.username == "renamed"

        stored = await ledger.get_link(GuildID(GUILD), UserID(USER))
        assert stored.global_user_id == created.id


def test_should_warn_uses_configured_threshold():
    ledger = UsageLedger(warning_threshold=0.5)
    assert ledger.should_warn(2500, 5000)
    assert not ledger.should_warn(2499, 5000)


@pytest.mark.parametrize("source, enabled, expected", [
    ("EN", [], 8),
    ("EN", ["EN", "ES", "FR"], 2),
    ("ES", ["EN", "FR"], 2),
    ("EN", ["EN", "ES", "ES", "XX"], 1),
])
def test_billed_language_count(source, enabled, expected):
    assert count_target_languages(source, enabled) == expected
