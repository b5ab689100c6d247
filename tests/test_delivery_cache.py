"""Tests for the LRU/TTL webhook handle pool."""

import asyncio

import pytest

from relaycord.datatypes.relay_datatypes import DeliveryCredential, TranslatedDelivery
from relaycord.delivery.delivery_cache import (
    CredentialRevokedError,
    DeliveryCache,
    DeliveryError,
    DeliveryHandle,
    build_original_embed,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class FakeHandle(DeliveryHandle):
    """Records sends; ``gate`` lets a test hold a send in flight."""

    def __init__(self, credential: DeliveryCredential) -> None:
        super().__init__(credential)
        self.sent = []
        self.closed = 0
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None

    async def _send(self, delivery: TranslatedDelivery) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        self.sent.append(delivery)

    async def _close(self) -> None:
        self.closed += 1


def credential(n: int) -> DeliveryCredential:
    return DeliveryCredential(id=str(n), token=f"token-{n}")


def delivery(text: str = "hola") -> TranslatedDelivery:
    return TranslatedDelivery(
        content=text,
        username="learner",
        avatar_url=None,
        original_content="hello",
        source_language="EN",
        target_language="ES",
        source_channel_name="english",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return DeliveryCache(handle_factory=FakeHandle, max_size=3, ttl_seconds=60, clock=clock)


class TestAcquire:

    async def test_hit_returns_same_handle(self, cache):
        first = await cache.acquire(credential(1))
        second = await cache.acquire(credential(1))

        assert first is second
        assert cache.stats()["hits"] == 1
        assert cache.stats()["misses"] == 1

    async def test_inserting_past_capacity_evicts_least_recent(self, cache):
        handles = [await cache.acquire(credential(n)) for n in range(3)]
        await cache.acquire(credential(0))  # 1 is now the least recently used

        await cache.acquire(credential(3))

        assert len(cache) == 3
        assert credential(1) not in cache
        assert credential(0) in cache
        assert handles[1].released
        assert handles[1].closed == 1
        assert not handles[0].released

    def test_rejects_empty_pool(self):
        with pytest.raises(ValueError):
            DeliveryCache(handle_factory=FakeHandle, max_size=0)


class TestSweep:

    async def test_idle_handles_are_swept(self, cache, clock):
        stale = await cache.acquire(credential(1))
        clock.now += 30
        fresh = await cache.acquire(credential(2))
        clock.now += 45

        evicted = await cache.sweep()

        assert evicted == 1
        assert credential(1) not in cache
        assert credential(2) in cache
        assert stale.released
        assert not fresh.released

    async def test_use_refreshes_idle_time(self, cache, clock):
        await cache.acquire(credential(1))
        clock.now += 50
        await cache.acquire(credential(1))
        clock.now += 50

        assert await cache.sweep() == 0


class TestSend:

    async def test_send_goes_through_handle(self, cache):
        await cache.send(credential(1), delivery("hola"))

        handle = await cache.acquire(credential(1))
        assert [d.content for d in handle.sent] == ["hola"]

    async def test_revoked_credential_is_evicted(self, cache):
        handle = await cache.acquire(credential(1))
        handle.error = CredentialRevokedError(credential(1))

        with pytest.raises(CredentialRevokedError):
            await cache.send(credential(1), delivery())

        assert credential(1) not in cache
        assert handle.released

    async def test_other_failures_keep_handle_cached(self, cache):
        handle = await cache.acquire(credential(1))
        handle.error = DeliveryError("rate limited")

        with pytest.raises(DeliveryError):
            await cache.send(credential(1), delivery())

        assert credential(1) in cache
        assert not handle.released


class TestInFlightRelease:

    async def test_evicted_handle_closes_after_last_send(self, cache):
        handle = await cache.acquire(credential(1))
        handle.gate = asyncio.Event()
        pending = asyncio.create_task(cache.send(credential(1), delivery()))
        await asyncio.sleep(0)
        assert handle.in_flight == 1

        await cache.evict(credential(1))

        assert handle.destroyed
        assert not handle.released

        handle.gate.set()
        await pending

        assert handle.in_flight == 0
        assert handle.released
        assert handle.closed == 1
        assert len(handle.sent) == 1

    async def test_concurrent_misses_never_send_through_released_handle(self):
        class YieldingHandle(FakeHandle):
            """Yields inside both send and close so concurrent callers interleave."""

            def __init__(self, credential):
                super().__init__(credential)
                self.released_during_send = []

            async def _send(self, delivery):
                self.released_during_send.append(self.released)
                await asyncio.sleep(0)
                await super()._send(delivery)

            async def _close(self):
                await asyncio.sleep(0)
                await super()._close()

        created = []

        def factory(cred):
            handle = YieldingHandle(cred)
            created.append(handle)
            return handle

        cache = DeliveryCache(handle_factory=factory, max_size=1)
        await cache.send(credential(1), delivery())

        await asyncio.gather(cache.send(credential(2), delivery()), cache.send(credential(3), delivery()))

        assert [h.credential.id for h in created] == ["1", "2", "3"]
        assert all(flags == [False] for flags in (h.released_during_send for h in created))
        assert all(len(h.sent) == 1 for h in created)
        assert [h.closed for h in created] == [1, 1, 0]
        assert len(cache) == 1
        assert credential(3) in cache

    async def test_released_handle_refuses_sends(self):
        handle = FakeHandle(credential(1))
        await handle.destroy()

        with pytest.raises(DeliveryError):
            await handle.send(delivery())

        assert handle.sent == []
        assert handle.in_flight == 0

    async def test_destroy_twice_releases_once(self):
        handle = FakeHandle(credential(1))

        await handle.destroy()
        await handle.destroy()

        assert handle.closed == 1


class TestLifecycle:

    async def test_start_and_shutdown_clear_pool(self, cache):
        handle = await cache.acquire(credential(1))

        cache.start()
        await cache.shutdown()

        assert len(cache) == 0
        assert handle.released


def test_original_embed_shows_source_language_and_channel():
    embed = build_original_embed(delivery())

    assert embed.author.name == "🇺🇸 Original (English)"
    assert embed.description == "hello"
    assert embed.footer.text == "#english"
