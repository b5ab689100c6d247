"""
Relaycord
=========

A Discord bot that relays messages between language immersion channels,
translating each message into every other enabled language while enforcing
monthly character budgets, verification and immersion bans.
"""

import os
import sys
from pathlib import Path

def resolve_base_dir() -> Path:
    """Determine the base directory of the project.
    Resolution order:
    1. RELAYCORD_HOME environment variable, if set.
    2. If running in a frozen/compiled context (e.g., PyInstaller, Nuitka), use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("RELAYCORD_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]

BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
from dataclasses import dataclass
from typing import Tuple

import discord
from dotenv import load_dotenv

from relaycord.configuration.app_configuration import app_config
from relaycord.configuration.subscriptions import GUILD_TIERS, USER_TIERS, apply_limit_overrides
from relaycord.database.database import Database
from relaycord.delivery.delivery_cache import DeliveryCache
from relaycord.moderation.moderation_store import ModerationStore
from relaycord.relay.relay_pipeline import RelayPipeline
from relaycord.settings.tenant_settings_service import TenantSettingsService
from relaycord.translation.translation_gateway import TranslationGateway
from relaycord.translation.translation_provider import DeepLTranslationProvider
from relaycord.usage.usage_ledger import UsageLedger
from relaycord.util.logger import get_logger, handle_exception
from relaycord.bot.discord_platform import DiscordPlatformClient


logger = get_logger("main")


@dataclass
class Runtime:
    """Long-lived components wired together at startup."""

    bot: discord.Bot
    database: Database
    delivery_cache: DeliveryCache
    provider: DeepLTranslationProvider
    pipeline: RelayPipeline
    moderation: ModerationStore
    settings: TenantSettingsService


def load_environment() -> Tuple[str, str]:
    """Load environment variables and return the Discord token and DeepL key.

    Raises
    ------
    SystemExit
        If ``DISCORD_BOT_TOKEN`` or ``DEEPL_API_KEY`` is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    deepl_key = os.getenv("DEEPL_API_KEY")
    if not deepl_key:
        logger.critical("'DEEPL_API_KEY' environment variable not set. Bot cannot translate.")
        sys.exit(1)
    return token, deepl_key


def build_intents() -> discord.Intents:
    """Intents enabling guild, member, message, and reaction events."""
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.messages = True
    intents.reactions = True
    intents.members = True
    return intents


def apply_tier_overrides() -> None:
    apply_limit_overrides(GUILD_TIERS, app_config.guild_tier_overrides)
    apply_limit_overrides(USER_TIERS, app_config.user_tier_overrides)


def build_runtime(deepl_key: str, database: Database) -> Runtime:
    """Instantiate the bot and every relay component, and register the cogs."""
    bot = discord.Bot(intents=build_intents())
    platform = DiscordPlatformClient(bot)

    delivery_cache = DeliveryCache(
        max_size=app_config.delivery_cache_max_size,
        ttl_seconds=app_config.delivery_cache_ttl_seconds,
        sweep_interval=app_config.delivery_cache_sweep_interval,
    )
    provider = DeepLTranslationProvider(
        deepl_key,
        api_url=app_config.deepl_api_url,
        timeout=app_config.translation_timeout,
    )
    moderation = ModerationStore(notifier=platform.post_moderation_log)
    pipeline = RelayPipeline(
        platform=platform,
        ledger=UsageLedger(warning_threshold=app_config.usage_warning_threshold),
        moderation=moderation,
        gateway=TranslationGateway(provider, timeout=app_config.translation_timeout),
        delivery_cache=delivery_cache,
        base_url=app_config.base_url,
        dashboard_url=app_config.dashboard_url,
        notice_delete_after=app_config.notice_delete_after,
    )

    from relaycord.bot.cogs import message_listener

    message_listener.setup(bot, pipeline)
    logger.info("All cogs loaded successfully.")

    return Runtime(
        bot=bot,
        database=database,
        delivery_cache=delivery_cache,
        provider=provider,
        pipeline=pipeline,
        moderation=moderation,
        settings=TenantSettingsService(platform, delivery_cache),
    )


async def start_bot(bot: discord.Bot, token: str) -> None:
    """Start the Discord bot and handle lifecycle logging around the connection."""
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(runtime: Runtime) -> None:
    """Gracefully stop the bot, webhook sessions, translation client and database."""
    if not runtime.bot.is_closed():
        try:
            await runtime.bot.close()
        except Exception as exc:
            logger.exception("Error while closing Discord bot: %s", exc)

    try:
        await runtime.delivery_cache.shutdown()
    except Exception as exc:
        logger.exception("Error during delivery cache shutdown: %s", exc)

    try:
        await runtime.provider.aclose()
    except Exception as exc:
        logger.exception("Error closing translation client: %s", exc)

    await runtime.database.shutdown()
    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap the database and the bot, returning an exit code."""
    token, deepl_key = load_environment()
    apply_tier_overrides()

    database = Database(app_config.database_path)
    logger.info("Initializing database...")
    if not await database.initialize():
        logger.critical("Failed to initialize database at %s", app_config.database_path)
        return 1

    try:
        runtime = build_runtime(deepl_key, database)
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        await database.shutdown()
        return 1

    exit_code = 0
    runtime.delivery_cache.start()
    try:
        await start_bot(runtime.bot, token)
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(runtime)

    return exit_code


def main() -> int:
    """Entrypoint that orchestrates the async runtime and returns the process code."""
    sys.excepthook = handle_exception
    logger.info("Starting Relaycord…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    print(f"Exited with code: {main()}")
