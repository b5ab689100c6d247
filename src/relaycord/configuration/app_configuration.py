from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict, Mapping
import yaml

from relaycord.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()


def _section(data: Mapping[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name, {})
    return value if isinstance(value, dict) else {}


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``./config/app_config.yml`` and exposes
    typed properties with defaults for every relay setting, so a missing file
    or a missing key never stops the bot from starting.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                return data if isinstance(data, dict) else {}
        except FileNotFoundError:
            logger.warning("[APP CONFIGURATION] Config file %s not found, using defaults.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Re-read the YAML file and replace the in-memory cache.

        Returns the mapping that was loaded (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # Usage limits
    # --------------------------
    @property
    def usage_warning_threshold(self) -> float:
        """Fraction of the monthly limit at which members get a remaining-budget notice."""
        usage = _section(self._data, "usage")
        return float(usage.get("warning_threshold", 0.8))

    @property
    def guild_tier_overrides(self) -> Dict[str, Dict[str, int]]:
        """Optional ``usage.guild_tiers`` limit overrides keyed by tier id."""
        return _section(_section(self._data, "usage"), "guild_tiers")

    @property
    def user_tier_overrides(self) -> Dict[str, Dict[str, int]]:
        """Optional ``usage.user_tiers`` limit overrides keyed by tier id."""
        return _section(_section(self._data, "usage"), "user_tiers")

    # --------------------------
    # Delivery cache
    # --------------------------
    @property
    def delivery_cache_max_size(self) -> int:
        return int(_section(self._data, "delivery_cache").get("max_size", 100))

    @property
    def delivery_cache_ttl_seconds(self) -> float:
        return float(_section(self._data, "delivery_cache").get("ttl_seconds", 30 * 60))

    @property
    def delivery_cache_sweep_interval(self) -> float:
        return float(_section(self._data, "delivery_cache").get("sweep_interval_seconds", 5 * 60))

    # --------------------------
    # Translation
    # --------------------------
    @property
    def translation_timeout(self) -> float:
        """Upper bound, in seconds, on translating one message into every target language."""
        return float(_section(self._data, "translation").get("timeout_seconds", 15.0))

    @property
    def deepl_api_url(self) -> str | None:
        """Explicit DeepL endpoint; ``None`` lets the provider pick free or pro from the key."""
        value = _section(self._data, "translation").get("deepl_api_url")
        return str(value) if value else None

    # --------------------------
    # Notices
    # --------------------------
    @property
    def base_url(self) -> str:
        return str(_section(self._data, "links").get("base_url", "http://localhost:4001"))

    @property
    def dashboard_url(self) -> str:
        return str(_section(self._data, "links").get("dashboard_url", "http://localhost:3000"))

    @property
    def notice_delete_after(self) -> float:
        """Seconds before an in-channel fallback notice deletes itself."""
        return float(_section(self._data, "notices").get("delete_after_seconds", 15.0))

    # --------------------------
    # Database
    # --------------------------
    @property
    def database_path(self) -> Path:
        value = _section(self._data, "database").get("path", "./data/relaycord.db")
        return Path(str(value)).resolve()


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
