"""
DeliveryCache: bounded pool of outbound webhook handles.

Handles are keyed by their webhook id/token pair. The pool holds at most
``max_size`` handles; inserting into a full pool evicts the least recently
used one. A periodic sweep evicts handles unused for longer than ``ttl_seconds``
regardless of pool pressure.

Eviction only stops caching a handle. A handle with sends in flight keeps
its HTTP session open until the last send completes, then closes it.

When Discord reports that a webhook no longer exists the handle is evicted
at once and ``CredentialRevokedError`` is raised so the caller can provision
a new webhook. Sends are never retried here.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import aiohttp
import discord

from relaycord.configuration.languages import get_language
from relaycord.datatypes.relay_datatypes import DeliveryCredential, TranslatedDelivery
from relaycord.scheduler.periodic_scheduler import PeriodicScheduler
from relaycord.util.logger import get_logger

logger = get_logger("delivery_cache")

DEFAULT_MAX_SIZE = 100
DEFAULT_TTL_SECONDS = 30 * 60
DEFAULT_SWEEP_INTERVAL = 5 * 60

# Discord JSON error codes meaning the webhook is gone or its token is dead
UNKNOWN_WEBHOOK = 10015
INVALID_WEBHOOK_TOKEN = 50027
REVOKED_ERROR_CODES = frozenset({UNKNOWN_WEBHOOK, INVALID_WEBHOOK_TOKEN})

ORIGINAL_EMBED_COLOR = 0x2B2D31


class DeliveryError(Exception):
    """A send through a delivery handle failed."""


class CredentialRevokedError(DeliveryError):
    """The webhook behind a credential no longer exists and must be recreated."""

    def __init__(self, credential: DeliveryCredential, message: str = "Webhook was deleted and needs to be recreated"):
        super().__init__(message)
        self.credential = credential


class DeliveryHandle(ABC):
    """
    One outbound connection for a single credential.

    Tracks in-flight sends so that ``destroy`` can be called at any time:
    the underlying resources are released once nothing is using them.
    """

    def __init__(self, credential: DeliveryCredential) -> None:
        self.credential = credential
        self._in_flight = 0
        self._destroyed = False
        self._released = False

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def released(self) -> bool:
        return self._released

    async def send(self, delivery: TranslatedDelivery) -> None:
        if self._released:
            raise DeliveryError(f"Handle for webhook {self.credential.id} was already released")
        self._in_flight += 1
        try:
            await self._send(delivery)
        finally:
            self._in_flight -= 1
            if self._destroyed and self._in_flight == 0:
                await self._release()

    async def destroy(self) -> None:
        """Stop accepting ownership; release now if idle, otherwise after the last in-flight send."""
        self._destroyed = True
        if self._in_flight == 0:
            await self._release()

    async def _release(self) -> None:
        if self._released:
            return
        self._released = True
        await self._close()

    @abstractmethod
    async def _send(self, delivery: TranslatedDelivery) -> None:
        ...

    async def _close(self) -> None:
        """Release underlying resources. Default: nothing to release."""


class WebhookDeliveryHandle(DeliveryHandle):
    """Posts translated messages through a Discord webhook over its own aiohttp session."""

    def __init__(self, credential: DeliveryCredential) -> None:
        super().__init__(credential)
        self._session: aiohttp.ClientSession | None = None
        self._webhook: discord.Webhook | None = None

    def _get_webhook(self) -> discord.Webhook:
        if self._webhook is None:
            self._session = aiohttp.ClientSession()
            self._webhook = discord.Webhook.partial(
                int(self.credential.id), self.credential.token, session=self._session
            )
        return self._webhook

    async def _send(self, delivery: TranslatedDelivery) -> None:
        webhook = self._get_webhook()
        try:
            await webhook.send(
                content=delivery.content,
                username=delivery.username,
                avatar_url=delivery.avatar_url,
                embed=build_original_embed(delivery),
                allowed_mentions=discord.AllowedMentions.none(),
            )
        except (discord.NotFound, discord.Unauthorized, discord.Forbidden) as exc:
            if isinstance(exc, discord.NotFound) or exc.code in REVOKED_ERROR_CODES:
                raise CredentialRevokedError(self.credential) from exc
            raise DeliveryError(str(exc)) from exc
        except discord.HTTPException as exc:
            raise DeliveryError(str(exc)) from exc

    async def _close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
        self._webhook = None


def build_original_embed(delivery: TranslatedDelivery) -> discord.Embed:
    """Embed attached under a translation showing the untranslated text and where it came from."""
    language = get_language(delivery.source_language)
    label = f"{language.emoji} Original ({language.name})" if language else f"Original ({delivery.source_language})"

    embed = discord.Embed(
        description=delivery.original_content,
        color=ORIGINAL_EMBED_COLOR,
        timestamp=delivery.timestamp,
    )
    embed.set_author(name=label)
    if delivery.source_channel_name:
        embed.set_footer(text=f"#{delivery.source_channel_name}", icon_url=delivery.guild_icon_url)
    return embed


@dataclass(slots=True)
class _CacheEntry:
    handle: DeliveryHandle
    last_used: float


class DeliveryCache:
    """
    LRU + TTL pool of ``DeliveryHandle`` objects.

    Args:
        handle_factory: Builds a handle for a credential on cache miss.
        max_size: Maximum number of cached handles.
        ttl_seconds: Idle time after which the sweep evicts a handle.
        sweep_interval: Seconds between sweeps once ``start()`` was called.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        handle_factory: Callable[[DeliveryCredential], DeliveryHandle] = WebhookDeliveryHandle,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._handle_factory = handle_factory
        self._max_size = max_size
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, _CacheEntry]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._scheduler = PeriodicScheduler("DELIVERY CACHE", self.sweep, lambda: sweep_interval)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, credential: DeliveryCredential) -> bool:
        return credential.key in self._entries

    @property
    def max_size(self) -> int:
        return self._max_size

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic TTL sweep."""
        self._scheduler.start()

    async def shutdown(self) -> None:
        await self._scheduler.shutdown()
        await self.clear()

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def _checkout(self, credential: DeliveryCredential) -> Tuple[DeliveryHandle, Optional[DeliveryHandle]]:
        """
        Look up or insert the handle for ``credential`` without yielding.

        Returns the handle and, when the pool was full, the least recently used
        handle that was dropped to make room. The caller destroys it.
        """
        key = credential.key
        now = self._clock()

        entry = self._entries.get(key)
        if entry is not None:
            entry.last_used = now
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.handle, None

        self._misses += 1
        evicted: DeliveryHandle | None = None
        if len(self._entries) >= self._max_size:
            _, oldest = self._entries.popitem(last=False)
            evicted = oldest.handle
            self._evictions += 1
            logger.debug("[DELIVERY CACHE] Evicted least recently used webhook %s", evicted.credential.id)

        handle = self._handle_factory(credential)
        self._entries[key] = _CacheEntry(handle=handle, last_used=now)
        return handle, evicted

    async def acquire(self, credential: DeliveryCredential) -> DeliveryHandle:
        """Return the cached handle for ``credential``, creating it on miss."""
        handle, evicted = self._checkout(credential)
        if evicted is not None:
            await evicted.destroy()
        return handle

    async def send(self, credential: DeliveryCredential, delivery: TranslatedDelivery) -> None:
        """
        Send ``delivery`` through the cached handle for ``credential``.

        The handle is marked in flight before any displaced handle is destroyed,
        so a concurrent miss cannot release it underneath this send.

        Raises:
            CredentialRevokedError: The webhook is gone; its handle was evicted.
            DeliveryError: Any other send failure.
        """
        handle, evicted = self._checkout(credential)
        try:
            await handle.send(delivery)
        except CredentialRevokedError:
            await self.evict(credential)
            logger.warning("[DELIVERY CACHE] Webhook %s no longer exists, evicted", credential.id)
            raise
        finally:
            if evicted is not None:
                await evicted.destroy()

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    async def evict(self, credential: DeliveryCredential) -> bool:
        entry = self._entries.pop(credential.key, None)
        if entry is None:
            return False
        self._evictions += 1
        await entry.handle.destroy()
        return True

    async def sweep(self) -> int:
        """Evict every handle idle for longer than the TTL. Returns the number evicted."""
        cutoff = self._clock() - self._ttl_seconds
        expired = [key for key, entry in self._entries.items() if entry.last_used < cutoff]

        handles = []
        for key in expired:
            entry = self._entries.pop(key)
            handles.append(entry.handle)
        self._evictions += len(handles)

        for handle in handles:
            await handle.destroy()

        if handles:
            logger.debug("[DELIVERY CACHE] Swept %d idle webhook(s), %d cached", len(handles), len(self._entries))
        return len(handles)

    async def clear(self) -> int:
        handles = [entry.handle for entry in self._entries.values()]
        self._entries.clear()
        for handle in handles:
            await handle.destroy()
        return len(handles)

    def stats(self) -> Dict[str, float]:
        return {
            "size": len(self._entries),
            "max_size": self._max_size,
            "ttl_seconds": self._ttl_seconds,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
        }
