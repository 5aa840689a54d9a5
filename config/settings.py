"""
Configuration loader for the Auto Sender service.
Reads settings from a YAML file with environment variable substitution,
then applies the plain environment overrides used in container deployments.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml


@dataclass
class DatabaseConfig:
    url: str = ""                       # postgresql:// | mysql:// | sqlite:// ; empty = no SQL
    store_backend: str = "memory"       # "sql" | "memory"
    seed_dummy_messages: bool = True    # memory backend only


@dataclass
class CacheConfig:
    redis_url: str = ""                 # empty = side cache disabled
    ttl_seconds: int = 24 * 60 * 60


@dataclass
class DeliveryConfig:
    webhook_url: str = ""               # empty = dry-run
    auth_key: str = ""
    auth_header: str = "x-ins-auth-key"
    timeout_seconds: float = 5.0
    accepted_status: int = 202
    placeholder_message_id: str = "static"


@dataclass
class SchedulerConfig:
    interval_seconds: float = 120.0
    batch_size: int = 2
    autostart: bool = True


@dataclass
class Settings:
    app_name: str = "AutoSender"
    debug: bool = False
    port: int = 8080
    log_level: str = "INFO"
    log_json: bool = False
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)


_settings: Optional[Settings] = None


def _substitute_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""
    pattern = re.compile(r'\$\{(\w+)\}')
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, "")
    return pattern.sub(replacer, value)


def _process_values(obj: Any) -> Any:
    """Recursively substitute env vars in all string values."""
    if isinstance(obj, str):
        return _substitute_env_vars(obj)
    elif isinstance(obj, dict):
        return {k: _process_values(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_process_values(v) for v in obj]
    return obj


def _redis_url(addr: str) -> str:
    """REDIS_ADDR may be a bare host:port."""
    if "://" in addr:
        return addr
    return f"redis://{addr}"


def _apply_env_overrides(settings: Settings) -> None:
    env = os.environ

    if env.get("PORT"):
        settings.port = int(env["PORT"])
    if env.get("LOG_LEVEL"):
        settings.log_level = env["LOG_LEVEL"].upper()
    if env.get("DB_DSN"):
        settings.database.url = env["DB_DSN"]
        settings.database.store_backend = "sql"
    if env.get("REDIS_ADDR"):
        settings.cache.redis_url = _redis_url(env["REDIS_ADDR"])
    if env.get("WEBHOOK_URL"):
        settings.delivery.webhook_url = env["WEBHOOK_URL"]
    if env.get("WEBHOOK_AUTH_KEY"):
        settings.delivery.auth_key = env["WEBHOOK_AUTH_KEY"]


def load_settings(config_path: str = None) -> Settings:
    """Load settings from YAML file, then apply environment overrides."""
    global _settings

    if config_path is None:
        config_path = os.environ.get(
            "AUTO_SENDER_CONFIG",
            str(Path(__file__).parent / "settings.yaml"),
        )

    settings = Settings()

    if Path(config_path).exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        raw = _process_values(raw)

        settings.app_name = raw.get("app_name", settings.app_name)
        settings.debug = raw.get("debug", settings.debug)
        settings.port = int(raw.get("port", settings.port))
        settings.log_level = raw.get("log_level", settings.log_level)
        settings.log_json = raw.get("log_json", settings.log_json)

        if "database" in raw:
            db = raw["database"] or {}
            settings.database = DatabaseConfig(
                url=db.get("url", settings.database.url),
                store_backend=db.get("store_backend", settings.database.store_backend),
                seed_dummy_messages=db.get("seed_dummy_messages", settings.database.seed_dummy_messages),
            )

        if "cache" in raw:
            c = raw["cache"] or {}
            settings.cache = CacheConfig(
                redis_url=c.get("redis_url", ""),
                ttl_seconds=int(c.get("ttl_seconds", settings.cache.ttl_seconds)),
            )

        if "delivery" in raw:
            d = raw["delivery"] or {}
            settings.delivery = DeliveryConfig(
                webhook_url=d.get("webhook_url", ""),
                auth_key=d.get("auth_key", ""),
                auth_header=d.get("auth_header", settings.delivery.auth_header),
                timeout_seconds=float(d.get("timeout_seconds", settings.delivery.timeout_seconds)),
                accepted_status=int(d.get("accepted_status", settings.delivery.accepted_status)),
                placeholder_message_id=d.get(
                    "placeholder_message_id", settings.delivery.placeholder_message_id,
                ),
            )

        if "scheduler" in raw:
            s = raw["scheduler"] or {}
            settings.scheduler = SchedulerConfig(
                interval_seconds=float(s.get("interval_seconds", settings.scheduler.interval_seconds)),
                batch_size=int(s.get("batch_size", settings.scheduler.batch_size)),
                autostart=s.get("autostart", settings.scheduler.autostart),
            )

    _apply_env_overrides(settings)

    _settings = settings
    return settings


def get_settings() -> Settings:
    """Return cached settings or load from default path."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Drop cached settings (for testing)."""
    global _settings
    _settings = None
