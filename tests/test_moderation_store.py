"""Tests for immersion bans, timeouts, warnings and the moderation audit log."""

import datetime
import json
from unittest.mock import AsyncMock

import pytest

from relaycord.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from relaycord.datatypes.moderation_datatypes import ModerationAction
from relaycord.moderation.moderation_store import ModerationStore, format_duration, parse_duration

GUILD = GuildID(10)
USER = UserID(20)
MOD = UserID(30)


class FakeClock:
    def __init__(self, start: datetime.datetime) -> None:
        self.now = start

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += datetime.timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime.datetime(2026, 6, 1, 12, 0, tzinfo=datetime.timezone.utc))


@pytest.fixture
def store(connection_manager, clock):
    return ModerationStore(connection_manager, clock=clock)


class TestDurations:

    @pytest.mark.parametrize("text, seconds", [
        ("45s", 45),
        ("30m", 1800),
        ("12h", 43200),
        ("1d", 86400),
        ("2w", 1209600),
        ("3 H", 10800),
    ])
    def test_parse_valid(self, text, seconds):
        assert parse_duration(text) == seconds

    @pytest.mark.parametrize("text", ["", "abc", "10", "5y", "-1h", "1.5h"])
    def test_parse_malformed(self, text):
        assert parse_duration(text) is None

    def test_format_largest_unit(self):
        assert format_duration(1) == "1 second"
        assert format_duration(120) == "2 minutes"
        assert format_duration(7200) == "2 hours"
        assert format_duration(86400) == "1 day"


class TestBans:

    async def test_permanent_ban_is_active(self, store):
        result = await store.ban(GUILD, USER, MOD, reason="spam")

        assert result.success
        assert result.ban.is_permanent
        status = await store.get_ban_status(GUILD, USER)
        assert status.is_banned
        assert status.is_permanent
        assert status.reason == "spam"
        assert status.banned_by == MOD

    async def test_double_ban_fails(self, store):
        await store.ban(GUILD, USER, MOD)

        second = await store.ban(GUILD, USER, MOD)

        assert not second.success
        assert second.error == "User is already banned from immersion"

    async def test_expired_ban_is_not_reported(self, store, clock):
        """A ban is never active past its expiry even without a timer."""
        await store.ban(GUILD, USER, MOD, duration_seconds=3600)
        assert await store.is_banned(GUILD, USER)

        clock.advance(seconds=3600)

        assert not await store.is_banned(GUILD, USER)
        history = await store.get_history(GUILD, USER)
        assert len(history.bans) == 1
        assert history.bans[0].active is False

    async def test_can_ban_again_after_expiry(self, store, clock):
        await store.ban(GUILD, USER, MOD, duration_seconds=60)
        clock.advance(minutes=5)

        result = await store.ban(GUILD, USER, MOD, reason="again")

        assert result.success

    async def test_ban_is_scoped_to_guild(self, store):
        await store.ban(GUILD, USER, MOD)

        assert not await store.is_banned(GuildID(11), USER)

    async def test_unban_lifts_ban(self, store):
        await store.ban(GUILD, USER, MOD)

        result = await store.unban(GUILD, USER, MOD, reason="appeal")

        assert result.success
        assert not await store.is_banned(GUILD, USER)
        history = await store.get_history(GUILD, USER)
        assert history.bans[0].unbanned_by == MOD
        assert history.bans[0].unban_reason == "appeal"

    async def test_unban_without_ban_fails(self, store):
        result = await store.unban(GUILD, USER, MOD)

        assert not result.success
        assert result.error == "User is not banned from immersion"

    async def test_timeout_expires_and_logs_timeout(self, store, clock):
        result = await store.timeout(GUILD, USER, MOD, 600, reason="cool off")

        assert result.success
        assert result.ban.expires_at == clock.now + datetime.timedelta(seconds=600)
        history = await store.get_history(GUILD, USER)
        assert history.logs[0].action is ModerationAction.TIMEOUT
        assert history.logs[0].duration_seconds == 600

    async def test_timeout_requires_positive_duration(self, store):
        result = await store.timeout(GUILD, USER, MOD, 0)

        assert not result.success
        assert not await store.is_banned(GUILD, USER)


class TestWarnings:

    async def test_warn_returns_active_count(self, store):
        first = await store.warn(GUILD, USER, MOD, "off topic")
        second = await store.warn(GUILD, USER, MOD, "english in spanish channel")

        assert first.warning_count == 1
        assert second.warning_count == 2
        assert len(await store.get_warnings(GUILD, USER)) == 2

    async def test_clear_warnings_reports_cleared(self, store):
        await store.warn(GUILD, USER, MOD, "one")
        await store.warn(GUILD, USER, MOD, "two")

        result = await store.clear_warnings(GUILD, USER, MOD)

        assert result.success
        assert result.cleared == 2
        assert await store.get_warnings(GUILD, USER) == []
        history = await store.get_history(GUILD, USER)
        assert len(history.warnings) == 2

    async def test_remove_single_warning(self, store):
        await store.warn(GUILD, USER, MOD, "one")
        await store.warn(GUILD, USER, MOD, "two")
        target = (await store.get_warnings(GUILD, USER))[0]

        result = await store.remove_warning(target.id, MOD, reason="mistake")

        assert result.success
        remaining = await store.get_warnings(GUILD, USER)
        assert target.id not in [w.id for w in remaining]
        assert len(remaining) == 1
        history = await store.get_history(GUILD, USER)
        removal = history.logs[0]
        assert removal.action is ModerationAction.REMOVE_WARNING
        assert json.loads(removal.metadata) == {"warning_id": target.id}

    async def test_remove_unknown_warning(self, store):
        result = await store.remove_warning(999, MOD)

        assert not result.success
        assert result.error == "Warning not found"


class TestListings:

    async def test_tenant_bans_paginates_and_sweeps(self, store, clock):
        for user in range(1, 6):
            await store.ban(GUILD, UserID(user), MOD)
        await store.ban(GUILD, UserID(99), MOD, duration_seconds=30)
        clock.advance(minutes=1)

        page = await store.get_tenant_bans(GUILD, page=2, limit=2)

        assert page.total == 5
        assert page.total_pages == 3
        assert page.page == 2
        assert len(page.items) == 2

    async def test_tenant_logs_cover_every_action(self, store):
        await store.ban(GUILD, USER, MOD)
        await store.unban(GUILD, USER, MOD)
        await store.warn(GUILD, USER, MOD, "late")

        page = await store.get_tenant_logs(GUILD)

        assert page.total == 3
        assert {entry.action for entry in page.items} == {
            ModerationAction.BAN,
            ModerationAction.UNBAN,
            ModerationAction.WARN,
        }


class TestNotifier:

    async def test_posts_to_log_channel(self, connection_manager, clock):
        notifier = AsyncMock()
        store = ModerationStore(connection_manager, notifier=notifier, clock=clock)
        await store.set_log_channel(GUILD, ChannelID(555))

        await store.ban(GUILD, USER, MOD, reason="spam")

        notifier.assert_awaited_once()
        channel_id, entry = notifier.await_args.args
        assert channel_id == ChannelID(555)
        assert entry.action is ModerationAction.BAN
        assert entry.reason == "spam"

    async def test_no_log_channel_skips_notifier(self, connection_manager, clock):
        notifier = AsyncMock()
        store = ModerationStore(connection_manager, notifier=notifier, clock=clock)

        await store.warn(GUILD, USER, MOD, "noise")

        notifier.assert_not_awaited()

    async def test_notifier_failure_keeps_state_change(self, connection_manager, clock):
        notifier = AsyncMock(side_effect=RuntimeError("channel deleted"))
        store = ModerationStore(connection_manager, notifier=notifier, clock=clock)
        await store.set_log_channel(GUILD, ChannelID(555))

        result = await store.ban(GUILD, USER, MOD)

        assert result.success
        assert await store.is_banned(GUILD, USER)
        assert await store.get_log_channel(GUILD) == ChannelID(555)
