from relaycord.repositories.guild_config_repo import GuildConfigRepository
from relaycord.repositories.verified_user_repo import VerifiedUserRepository
from relaycord.repositories.global_user_repo import GlobalUserRepository
from relaycord.repositories.usage_log_repo import UsageLogRepository
from relaycord.repositories.immersion_ban_repo import ImmersionBanRepository
from relaycord.repositories.immersion_warning_repo import ImmersionWarningRepository
from relaycord.repositories.moderation_log_repo import ModerationLogRepository

__all__ = [
    "GuildConfigRepository",
    "VerifiedUserRepository",
    "GlobalUserRepository",
    "UsageLogRepository",
    "ImmersionBanRepository",
    "ImmersionWarningRepository",
    "ModerationLogRepository",
]
