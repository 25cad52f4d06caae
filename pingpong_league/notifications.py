"""Achievement announcements."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import discord

from .achievements import TITLES

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class AchievementUnlocked:
    player_id: str
    achievement_id: str
    player_name: str = ""
    repeat: bool = False

    def message(self) -> str:
        title = TITLES.get(self.achievement_id, self.achievement_id)
        who = self.player_name or self.player_id
        if self.repeat:
            return f"{who} earned {title} again!"
        return f"{who} unlocked {title}!"


class Notifier(Protocol):
    def notify(self, event: AchievementUnlocked) -> None: ...


class LogNotifier:
    def notify(self, event: AchievementUnlocked) -> None:
        log.info("[ACHIEVEMENT] %s", event.message())


class DiscordWebhookNotifier:
    """Posts achievement announcements to a Discord channel webhook."""

    def __init__(
        self, webhook: discord.SyncWebhook, *, username: str | None = None
    ) -> None:
        self._webhook = webhook
        self._username = username

    @classmethod
    def from_url(
        cls, url: str, *, username: str | None = None
    ) -> DiscordWebhookNotifier:
        return cls(discord.SyncWebhook.from_url(url), username=username)

    def notify(self, event: AchievementUnlocked) -> None:
        kwargs: dict[str, object] = {"content": event.message()}
        if self._username:
            kwargs["username"] = self._username
        try:
            self._webhook.send(**kwargs)
        except discord.DiscordException as exc:
            log.warning(
                "Failed to announce %s for player %s: %s",
                event.achievement_id,
                event.player_id,
                exc,
            )


def deliver(notifier: Notifier | None, event: AchievementUnlocked) -> None:
    """Fire-and-forget delivery; failures never reach the caller."""
    if notifier is None:
        return
    try:
        notifier.notify(event)
    except Exception:  # pylint: disable=broad-except
        log.exception(
            "Notifier failed for %s (player %s)", event.achievement_id, event.player_id
        )


__all__ = [
    "AchievementUnlocked",
    "DiscordWebhookNotifier",
    "LogNotifier",
    "Notifier",
    "deliver",
]
