import logging
import time
from typing import Any

import requests

WEBHOOK_TIMEOUT = 10
# Longest rate-limit pause honoured before giving up on a webhook
MAX_RETRY_AFTER = 30.0


# Source https://stackoverflow.com/a/1094933/5209106
def format_bytes(bytes: int | float, suffix: str = "B") -> str:
    for unit in ("", "Ki", "Mi", "Gi", "Ti", "Pi", "Ei", "Zi"):
        if abs(bytes) < 1024:
            return f"{bytes:3.1f} {unit}{suffix}"
        bytes /= 1024
    return f"{bytes:.1f} Yi{suffix}"

def format_volume_space(volume_space: dict[str, int | None]) -> list[str]:
    """One line per destination volume; volumes that could not be queried say so."""
    lines = []
    for path, free in volume_space.items():
        if free is None:
            lines.append(f"{path}: unavailable")
        else:
            lines.append(f"{path}: {format_bytes(free)} free")
    return lines

def _retry_after(response: requests.Response) -> float | None:
    """Seconds to wait before retrying a rate-limited webhook, if the server says."""
    try:
        value = response.json().get('retry_after')
    except (ValueError, AttributeError):
        value = None
    if value is None:
        value = response.headers.get('Retry-After')
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None

def send_webhook(service_name: str, webhook_url: str, payload: dict[str, Any],
                 session: requests.Session | None = None) -> bool:
    """
    POST a JSON payload to a webhook.

    A 429 response is retried once after the server's ``retry_after`` delay,
    provided the delay is at most MAX_RETRY_AFTER seconds.
    """
    http = session or requests
    try:
        response = http.post(webhook_url, json=payload, timeout=WEBHOOK_TIMEOUT)
        if response.status_code == 429:
            delay = _retry_after(response)
            if delay is None or delay > MAX_RETRY_AFTER:
                logging.error(f"{service_name} webhook rate limited, not retrying (retry after {delay}s)")
                return False
            logging.warning(f"{service_name} webhook rate limited, retrying in {delay:.1f}s")
            time.sleep(delay)
            response = http.post(webhook_url, json=payload, timeout=WEBHOOK_TIMEOUT)
        response.raise_for_status()
        return True
    except requests.RequestException as e:
        logging.error(f"Failed to send {service_name} webhook: {str(e)}")
        return False
