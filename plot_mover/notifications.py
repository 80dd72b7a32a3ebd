import logging
from notifications import NotificationHandler as BaseNotificationHandler
from .filesystem import get_fs_free_space

class NotificationManager:
    def __init__(self, config):
        self.config = config
        self.enabled = config['Settings']['NOTIFICATIONS_ENABLED']
        self.handler = BaseNotificationHandler(config)

    def _get_volume_space(self):
        volume_space = {}
        for volume in self.config['Paths']['DESTINATION_PATHS']:
            try:
                volume_space[volume] = get_fs_free_space(volume)
            except OSError as e:
                logging.warning(f"Error getting free space of {volume}: {e}")
                volume_space[volume] = None
        return volume_space

    def notify_summary(self, stats):
        if not self.enabled:
            return

        self.handler.notify_summary(
            moved=stats.moved,
            total_bytes=stats.bytes_moved,
            failed=stats.failed,
            cancelled=stats.cancelled,
            elapsed_time=stats.elapsed,
            avg_speed=stats.avg_speed / (1024 * 1024),
            volume_space=self._get_volume_space()
        )

    def notify_error(self, error_message):
        if not self.enabled:
            return

        self.handler.notify_error(error_message)
