"""Configuration helpers for the league runtime."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import boto3

from .notifications import DiscordWebhookNotifier, LogNotifier, Notifier
from .service import LeagueService
from .storage import LeagueStorage

log = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_str(name: str, *, default: str | None = None) -> str | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


@dataclass(frozen=True)
class LeagueConfig:
    table_name: str | None
    aws_region: str
    league_id: str
    webhook_url: str | None
    notifications_enabled: bool


def read_league_config() -> LeagueConfig:
    return LeagueConfig(
        table_name=env_str("LEAGUE_TABLE_NAME"),
        aws_region=env_str("AWS_REGION", default="us-east-1") or "us-east-1",
        league_id=env_str("LEAGUE_ID", default="default") or "default",
        webhook_url=env_str("ACHIEVEMENT_WEBHOOK_URL"),
        notifications_enabled=env_bool("ACHIEVEMENT_NOTIFICATIONS", default=True),
    )


def build_notifier(config: LeagueConfig) -> Notifier | None:
    if not config.notifications_enabled:
        return None
    if config.webhook_url:
        return DiscordWebhookNotifier.from_url(config.webhook_url)
    log.info("ACHIEVEMENT_WEBHOOK_URL not set; achievements will only be logged")
    return LogNotifier()


def build_storage(config: LeagueConfig) -> LeagueStorage:
    if not config.table_name:
        raise RuntimeError("LEAGUE_TABLE_NAME must be set")
    dynamodb = boto3.resource("dynamodb", region_name=config.aws_region)
    return LeagueStorage(dynamodb.Table(config.table_name), config.league_id)


def build_service(config: LeagueConfig | None = None) -> LeagueService:
    config = config or read_league_config()
    return LeagueService(build_storage(config), notifier=build_notifier(config))


__all__ = [
    "LeagueConfig",
    "build_notifier",
    "build_service",
    "build_storage",
    "env_bool",
    "env_str",
    "read_league_config",
]
