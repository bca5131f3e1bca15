"""Scraping configuration.

Values are layered, lowest to highest priority:

- built-in defaults (SETTINGS below),
- environment variables (also read from a project-level .env file),
- values stored in the configuration store (AppConfig nodes in Neo4j).

The orchestrator takes one immutable BatchConfig snapshot at the start of each
run; edits made while a batch is in flight only affect the next run.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional

from ipo_ingest.db.neo4j_connector import load_env_from_file

logger = logging.getLogger(__name__)


class ConfigKeys:
    SCRAPING_COUNT = "Scraping.Count"
    SCRAPING_REFRESH_INTERVAL = "Scraping.RefreshInterval"
    SCRAPING_AUTO_ENABLED = "Scraping.AutoEnabled"
    SCRAPING_SITEMAP_URL = "Scraping.SitemapUrl"
    SCRAPING_CARD_CSS_CLASS = "Scraping.CardCssClass"
    SCRAPING_CONTENT_CSS_CLASS = "Scraping.ContentCssClass"
    SCRAPING_RETRY_COUNT = "Scraping.RetryCount"
    SCRAPING_RETRY_DELAY = "Scraping.RetryDelay"
    SCRAPING_TIMEOUT = "Scraping.Timeout"


@dataclass(frozen=True)
class Setting:
    key: str
    env: str
    default: str
    data_type: str
    description: str
    category: str = "Scraping"


SETTINGS: Dict[str, Setting] = {
    s.key: s
    for s in (
        Setting(ConfigKeys.SCRAPING_COUNT, "IPO_SCRAPING_COUNT", "20", "int",
                "Number of latest IPOs to scrape per batch"),
        Setting(ConfigKeys.SCRAPING_REFRESH_INTERVAL, "IPO_REFRESH_INTERVAL", "10", "int",
                "Seconds between automatic scraping checks"),
        Setting(ConfigKeys.SCRAPING_AUTO_ENABLED, "IPO_AUTO_SCRAPING", "false", "bool",
                "Run a batch automatically every refresh interval"),
        Setting(ConfigKeys.SCRAPING_SITEMAP_URL, "IPO_SITEMAP_URL", "https://www.ipopremium.in/sitemap.xml", "string",
                "Sitemap listing the IPO pages"),
        Setting(ConfigKeys.SCRAPING_CARD_CSS_CLASS, "IPO_CARD_CSS_CLASS", "card card-primary card-outline", "string",
                "Class selector of the IPO summary card"),
        Setting(ConfigKeys.SCRAPING_CONTENT_CSS_CLASS, "IPO_CONTENT_CSS_CLASS", "col-md-8 order-1", "string",
                "Class selector of the IPO detail content"),
        Setting(ConfigKeys.SCRAPING_RETRY_COUNT, "IPO_RETRY_COUNT", "3", "int",
                "Retries per page after the first attempt"),
        Setting(ConfigKeys.SCRAPING_RETRY_DELAY, "IPO_RETRY_DELAY_MS", "2000", "int",
                "Base retry delay in milliseconds (multiplied by the attempt number)"),
        Setting(ConfigKeys.SCRAPING_TIMEOUT, "IPO_FETCH_TIMEOUT_MS", "30000", "int",
                "Per-request fetch timeout in milliseconds"),
    )
}


@dataclass(frozen=True)
class BatchConfig:
    window_size: int = 20
    sitemap_url: str = "https://www.ipopremium.in/sitemap.xml"
    primary_selector: str = "card card-primary card-outline"
    secondary_selector: str = "col-md-8 order-1"
    max_retries: int = 3
    base_delay_ms: int = 2000
    fetch_timeout_ms: int = 30000

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _to_int(raw: Optional[str]) -> Optional[int]:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return None


def _to_bool(raw: Optional[str]) -> Optional[bool]:
    s = str(raw or "").strip().lower()
    if s in ("1", "true", "yes", "on"):
        return True
    if s in ("0", "false", "no", "off"):
        return False
    return None


class ConfigProvider:
    """Resolves scraping settings. `store` is anything with get_values() and set_value(key, value)."""

    def __init__(self, store=None, *, environ: Optional[Mapping[str, str]] = None, load_dotenv: bool = True) -> None:
        self.store = store
        if environ is None:
            if load_dotenv:
                load_env_from_file()
            environ = os.environ
        self.environ = environ

    # --- Public API ---
    def get_batch_config(self) -> BatchConfig:
        values = self._effective_values()
        return BatchConfig(
            window_size=self._int(values, ConfigKeys.SCRAPING_COUNT),
            sitemap_url=values[ConfigKeys.SCRAPING_SITEMAP_URL]["value"],
            primary_selector=values[ConfigKeys.SCRAPING_CARD_CSS_CLASS]["value"],
            secondary_selector=values[ConfigKeys.SCRAPING_CONTENT_CSS_CLASS]["value"],
            max_retries=max(self._int(values, ConfigKeys.SCRAPING_RETRY_COUNT), 0),
            base_delay_ms=max(self._int(values, ConfigKeys.SCRAPING_RETRY_DELAY), 0),
            fetch_timeout_ms=max(self._int(values, ConfigKeys.SCRAPING_TIMEOUT), 1),
        )

    def get_scraping_config(self) -> Dict[str, str]:
        """Flat key -> effective value mapping, as served by the configuration API."""
        return {key: v["value"] for key, v in self._effective_values().items()}

    def get_value(self, key: str) -> Optional[str]:
        if key not in SETTINGS:
            return None
        return self._effective_values()[key]["value"]

    def get_int(self, key: str) -> int:
        return self._int(self._effective_values(), key)

    def get_bool(self, key: str) -> bool:
        value = _to_bool(self.get_value(key))
        if value is None:
            value = bool(_to_bool(SETTINGS[key].default))
        return value

    def set_value(self, key: str, value: str) -> bool:
        setting = SETTINGS.get(key)
        if setting is None:
            return False
        if setting.data_type == "int" and _to_int(value) is None:
            raise ValueError(f"Configuration '{key}' expects an integer, got {value!r}")
        if setting.data_type == "bool" and _to_bool(value) is None:
            raise ValueError(f"Configuration '{key}' expects a boolean, got {value!r}")
        if self.store is None:
            raise RuntimeError("No configuration store configured; set values via environment variables instead")
        self.store.set_value(
            key,
            str(value),
            description=setting.description,
            data_type=setting.data_type,
            category=setting.category,
        )
        logger.info("Configuration %s updated", key)
        return True

    def list_values(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        out = []
        for key, entry in self._effective_values().items():
            setting = SETTINGS[key]
            if category and setting.category.lower() != category.lower():
                continue
            out.append(
                {
                    "key": key,
                    "value": entry["value"],
                    "source": entry["source"],
                    "description": setting.description,
                    "data_type": setting.data_type,
                    "category": setting.category,
                }
            )
        return out

    def seed_defaults(self) -> int:
        """Write defaults for keys missing from the store. Returns the number written."""
        if self.store is None:
            return 0
        stored = self.store.get_values() or {}
        written = 0
        for key, setting in SETTINGS.items():
            if key in stored:
                continue
            self.store.set_value(
                key,
                setting.default,
                description=setting.description,
                data_type=setting.data_type,
                category=setting.category,
            )
            written += 1
        return written

    # --- Internals ---
    def _effective_values(self) -> Dict[str, Dict[str, str]]:
        stored: Dict[str, Optional[str]] = {}
        if self.store is not None:
            stored = self.store.get_values() or {}

        values: Dict[str, Dict[str, str]] = {}
        for key, setting in SETTINGS.items():
            value, source = setting.default, "default"
            for candidate, candidate_source in (
                (self.environ.get(setting.env), "env"),
                (stored.get(key), "stored"),
            ):
                if candidate is None or str(candidate).strip() == "":
                    continue
                if not self._valid(setting, candidate):
                    logger.warning(
                        "Ignoring invalid %s value %r for %s; keeping %r",
                        candidate_source, candidate, key, value,
                    )
                    continue
                value, source = str(candidate).strip(), candidate_source
            values[key] = {"value": value, "source": source}
        return values

    @staticmethod
    def _valid(setting: Setting, raw: str) -> bool:
        if setting.data_type == "int":
            return _to_int(raw) is not None
        if setting.data_type == "bool":
            return _to_bool(raw) is not None
        return True

    @staticmethod
    def _int(values: Dict[str, Dict[str, str]], key: str) -> int:
        parsed = _to_int(values[key]["value"])
        if parsed is None:
            parsed = int(SETTINGS[key].default)
        return parsed
