from datetime import datetime, timezone
from typing import Any

from .util import send_webhook

class DiscordService:
    def __init__(self, webhook_url: str):
        self.webhook_url = webhook_url

    def send_summary(self, data: dict[str, Any]) -> bool:
        embeds = [{
            "title": "🚜 Plot Mover Stopped",
            "color": 0x00ff00 if data['failed'] == 0 else 0xffa500,
            "fields": [
                {
                    "name": "📊 Plots Moved",
                    "value": f"{data['moved']:,}",
                    "inline": True
                },
                {
                    "name": "💾 Data Moved",
                    "value": data['space_moved'],
                    "inline": True
                },
                {
                    "name": "📈 Transfer Speed",
                    "value": f"{data['avg_speed']:.1f} MB/s",
                    "inline": True
                },
                {
                    "name": "⚠️ Failed / Cancelled",
                    "value": f"{data['failed']} / {data['cancelled']}",
                    "inline": True
                },
                {
                    "name": "⏱️ Uptime",
                    "value": data['time_str'],
                    "inline": True
                },
                {
                    "name": "💽 Destination Volumes",
                    "value": "\n".join(data['volume_lines']) or "none",
                    "inline": False
                }
            ],
            "footer": {
                "text": f"Host: {data['hostname']}"
            },
            "timestamp": datetime.now(timezone.utc).isoformat()
        }]

        return send_webhook("Discord", self.webhook_url, {"embeds": embeds})

    def send_error(self, error_msg: str, hostname: str) -> bool:
        embeds = [{
            "title": "❌ Plot Mover Error",
            "color": 0xff0000,
            "description": error_msg,
            "footer": {
                "text": f"Host: {hostname}"
            },
            "timestamp": datetime.now(timezone.utc).isoformat()
        }]

        return send_webhook("Discord", self.webhook_url, {"embeds": embeds})
