import logging
from unittest import mock

import discord

from pingpong_league.notifications import (
    AchievementUnlocked,
    DiscordWebhookNotifier,
    LogNotifier,
    deliver,
)


def test_message_for_first_unlock_and_repeat():
    first = AchievementUnlocked("a", "HOT_STREAK", player_name="Alice")
    assert first.message() == "Alice unlocked Hot Streak!"

    repeat = AchievementUnlocked("a", "HOT_STREAK", player_name="Alice", repeat=True)
    assert repeat.message() == "Alice earned Hot Streak again!"


def test_message_falls_back_to_ids():
    event = AchievementUnlocked("p7", "SOMETHING_NEW")
    assert event.message() == "p7 unlocked SOMETHING_NEW!"


def test_log_notifier_writes_info(caplog):
    with caplog.at_level(logging.INFO, logger="pingpong_league.notifications"):
        LogNotifier().notify(AchievementUnlocked("a", "YO_YO", player_name="Alice"))
    assert "[ACHIEVEMENT] Alice unlocked Yo-Yo!" in caplog.text


def test_discord_notifier_posts_message():
    webhook = mock.Mock()
    notifier = DiscordWebhookNotifier(webhook, username="League Bot")

    notifier.notify(AchievementUnlocked("a", "YO_YO", player_name="Alice"))

    webhook.send.assert_called_once_with(
        content="Alice unlocked Yo-Yo!", username="League Bot"
    )


def test_discord_notifier_logs_delivery_errors(caplog):
    webhook = mock.Mock()
    webhook.send.side_effect = discord.DiscordException("rate limited")
    notifier = DiscordWebhookNotifier(webhook)

    notifier.notify(AchievementUnlocked("a", "YO_YO"))

    assert "Failed to announce YO_YO for player a" in caplog.text


def test_discord_notifier_from_url():
    with mock.patch.object(discord.SyncWebhook, "from_url") as from_url:
        notifier = DiscordWebhookNotifier.from_url("https://example.invalid/hook")
    from_url.assert_called_once_with("https://example.invalid/hook")
    notifier.notify(AchievementUnlocked("a", "YO_YO"))
    from_url.return_value.send.assert_called_once_with(content="a unlocked Yo-Yo!")


def test_deliver_swallows_notifier_failures(caplog):
    notifier = mock.Mock()
    notifier.notify.side_effect = RuntimeError("down")

    deliver(notifier, AchievementUnlocked("a", "YO_YO"))

    assert "Notifier failed for YO_YO" in caplog.text


def test_deliver_without_notifier_is_a_no_op():
    deliver(None, AchievementUnlocked("a", "YO_YO"))
