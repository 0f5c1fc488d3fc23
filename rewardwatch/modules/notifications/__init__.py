from rewardwatch.modules.notifications.notifier import DiscordNotifier, Notifier

__all__ = ["Notifier", "DiscordNotifier"]
