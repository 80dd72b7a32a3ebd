import apprise
import logging
import platform
from typing import Any
from dataclasses import dataclass, field
from urllib.parse import urlparse
from .discord_service import DiscordService
from .util import format_bytes, format_volume_space

@dataclass
class NotificationConfig:
    enabled: bool
    urls: list[str]
    hostname: str = platform.node()
    destination_paths: list[str] = field(default_factory=list)

class NotificationHandler:
    def __init__(self, config: dict[str, Any]):
        settings = config.get('Settings', {})

        self.config = NotificationConfig(
            enabled=settings.get('NOTIFICATIONS_ENABLED', False),
            urls=settings.get('NOTIFICATION_URLS', []),
            destination_paths=config.get('Paths', {}).get('DESTINATION_PATHS', []),
        )

        self.apobj = None
        self.discord_services: list[DiscordService] = []

        if self.config.enabled and self.config.urls:
            for url in self.config.urls:
                if url.startswith('discord'):
                    webhook_url = self._convert_discord_url(url)
                    if webhook_url:
                        self.discord_services.append(DiscordService(webhook_url))
                else:
                    if self.apobj is None:
                        self.apobj = apprise.Apprise()
                    self.apobj.add(url) # type: ignore

    def _format_time(self, seconds: float) -> str:
        if seconds < 60:
            return f"{seconds:.1f} seconds"
        elif seconds < 3600:
            minutes = seconds / 60
            return f"{minutes:.1f} minutes"
        else:
            hours = seconds / 3600
            return f"{hours:.1f} hours"

    def _convert_discord_url(self, apprise_url: str) -> str | None:
        parsed = urlparse(apprise_url)
        if parsed.scheme != 'discord' or not parsed.hostname:
            logging.error(f"Unsupported Discord Apprise URL: {apprise_url}")
            return None
        webhook_id = parsed.hostname
        webhook_token = parsed.path.lstrip('/')
        return f"https://discord.com/api/webhooks/{webhook_id}/{webhook_token}"

    def _notify_apprise(self, title: str, message: str) -> bool:
        if self.apobj is None:
            return True
        try:
            return bool(self.apobj.notify( # type: ignore
                title=title,
                body=message,
                body_format=apprise.NotifyFormat.MARKDOWN
            ))
        except Exception as e:
            logging.error(f"Failed to send Apprise notification: {str(e)}")
            return False

    def notify_summary(self, moved: int, total_bytes: int, failed: int, cancelled: int,
                       elapsed_time: float, avg_speed: float,
                       volume_space: dict[str, int | None]) -> bool:
        if not self.config.enabled:
            return False

        logging.info("Sending shutdown summary notification")

        volume_lines = format_volume_space(volume_space)
        notification_data = {
            'moved': moved,
            'failed': failed,
            'cancelled': cancelled,
            'space_moved': format_bytes(total_bytes),
            'time_str': self._format_time(elapsed_time),
            'avg_speed': avg_speed,
            'volume_lines': volume_lines,
            'hostname': self.config.hostname,
        }

        success = True
        for service in self.discord_services:
            if not service.send_summary(notification_data):
                success = False

        message = (
            "🚜 Plot Mover Stopped\n\n"
            f"**Plots Moved:** {moved:,}\n"
            f"**Space Moved:** {notification_data['space_moved']}\n"
            f"**Failed / Cancelled:** {failed} / {cancelled}\n"
            f"**Uptime:** {notification_data['time_str']}\n"
            f"**Average Speed:** {avg_speed:.1f}MB/s\n\n"
            + "\n".join(volume_lines)
        )
        if not self._notify_apprise("Plot Mover Stopped", message):
            success = False

        return success

    def notify_error(self, error_msg: str) -> bool:
        if not self.config.enabled:
            return False

        success = True
        for service in self.discord_services:
            if not service.send_error(error_msg, self.config.hostname):
                success = False

        message = f"❌ Plot Mover Error\n\n**Error Details:** {error_msg}"
        if not self._notify_apprise("Plot Mover Error", message):
            success = False

        return success
