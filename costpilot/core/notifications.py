"""Notification utilities for cost spike alerts.

Spike events become Teams Adaptive Cards posted to the configured webhook,
with severity filtering and per-user cooldown deduplication.

SECURITY: All webhook URLs are sanitized from logs to prevent credential leakage.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any

import httpx

from costpilot.core.config import get_settings
from costpilot.engine.types import CostEvaluation

logger = logging.getLogger(__name__)

SPIKE_ALERT_TYPE = "cost_spike"

# Regex patterns for sensitive data redaction
WEBHOOK_URL_PATTERN = re.compile(
    r"https?://[^\s\"]+webhook[^\s\"]*|https?://[^\s\"]*office\.com/webhook[^\s\"]*",
    re.IGNORECASE,
)
SENSITIVE_PATTERNS = {
    "password": re.compile(r"(['\"]?(?:password|passwd|pwd)['\"]?\s*[:=]\s*)['\"][^'\"]+['\"]", re.IGNORECASE),
    "secret": re.compile(r"(['\"]?(?:client_secret|secret)['\"]?\s*[:=]\s*)['\"][^'\"]+['\"]", re.IGNORECASE),
    "token": re.compile(r"(['\"]?(?:token|access_token)['\"]?\s*[:=]\s*)['\"][^'\"]+['\"]", re.IGNORECASE),
    "bearer": re.compile(r"(bearer\s+)\S+", re.IGNORECASE),
}


class NotificationChannel(str, Enum):
    """Supported notification channels."""

    TEAMS = "teams"


class Severity(str, Enum):
    """Alert severity levels."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class Notification:
    """Notification data structure."""

    title: str
    message: str
    severity: Severity = Severity.WARNING
    channel: NotificationChannel = NotificationChannel.TEAMS
    facts: dict[str, str] = field(default_factory=dict)
    user_id: str | None = None
    dashboard_url: str | None = None


# In-memory tracking for notification deduplication
# Maps (alert_type, user_id) -> last_notification_time
_notification_history: dict[tuple[str, str | None], datetime] = {}


def should_notify(
    alert_type: str,
    user_id: str | None = None,
    cooldown_minutes: int | None = None,
) -> bool:
    """Check if notification should be sent based on deduplication rules.

    Args:
        alert_type: Type of alert (e.g., 'cost_spike')
        user_id: Optional user for per-user tracking
        cooldown_minutes: Optional override for cooldown period

    Returns:
        True if notification should be sent, False if in cooldown
    """
    settings = get_settings()

    if not settings.notification_enabled:
        return False

    cooldown = timedelta(minutes=cooldown_minutes or settings.notification_cooldown_minutes)
    key = (alert_type, user_id)
    now = datetime.utcnow()

    last_sent = _notification_history.get(key)
    if last_sent and (now - last_sent) < cooldown:
        logger.debug(
            f"Skipping notification for {alert_type}/{user_id}: "
            f"in cooldown period (last sent {last_sent.isoformat()})"
        )
        return False

    return True


def record_notification_sent(alert_type: str, user_id: str | None = None) -> None:
    """Record that a notification was sent for deduplication tracking."""
    _notification_history[(alert_type, user_id)] = datetime.utcnow()


def severity_meets_threshold(severity: Severity | str, threshold: Severity | str) -> bool:
    """Check if severity meets or exceeds the threshold.

    Severity order: info < warning < error < critical
    """
    severity_order = {
        Severity.INFO: 0,
        Severity.WARNING: 1,
        Severity.ERROR: 2,
        Severity.CRITICAL: 3,
    }

    return severity_order[Severity(severity)] >= severity_order[Severity(threshold)]


def get_severity_color(severity: Severity | str) -> str:
    """Get Teams color code for severity level."""
    colors = {
        Severity.INFO: "#0078D4",  # Blue
        Severity.WARNING: "#FFB900",  # Yellow/Gold
        Severity.ERROR: "#D83B01",  # Orange/Red
        Severity.CRITICAL: "#A80000",  # Dark Red
    }
    return colors.get(Severity(severity), "#0078D4")


def format_spike_alert(notification: Notification) -> dict[str, Any]:
    """Format a notification as a Teams Adaptive Card.

    Args:
        notification: The notification to format

    Returns:
        Adaptive Card JSON payload for Teams webhook
    """
    timestamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M UTC")

    content: dict[str, Any] = {
        "type": "AdaptiveCard",
        "version": "1.4",
        "style": "emphasis",
        "backgroundColor": get_severity_color(notification.severity),
        "body": [
            {
                "type": "TextBlock",
                "text": notification.title,
                "weight": "Bolder",
                "size": "Large",
                "color": "Attention" if notification.severity == Severity.CRITICAL else "Default",
            },
            {
                "type": "TextBlock",
                "text": f"Severity: **{notification.severity.value.upper()}** | {timestamp}",
                "size": "Small",
                "isSubtle": True,
            },
            {
                "type": "TextBlock",
                "text": notification.message,
                "wrap": True,
                "spacing": "Medium",
            },
        ],
    }

    if notification.facts:
        content["body"].append({
            "type": "FactSet",
            "facts": [{"title": k, "value": v} for k, v in notification.facts.items()],
        })

    if notification.dashboard_url:
        content["actions"] = [{
            "type": "Action.OpenUrl",
            "title": "View Dashboard",
            "url": notification.dashboard_url,
        }]

    return {
        "type": "message",
        "attachments": [
            {
                "contentType": "application/vnd.microsoft.card.adaptive",
                "contentVersion": "1.4",
                "content": content,
            }
        ],
    }


def sanitize_log_message(message: str) -> str:
    """Sanitize log message to remove webhook URLs and secrets."""
    if not message:
        return message

    sanitized = WEBHOOK_URL_PATTERN.sub("[WEBHOOK_URL_REDACTED]", message)

    for pattern in SENSITIVE_PATTERNS.values():
        sanitized = pattern.sub(lambda m: f"{m.group(1)}[REDACTED]", sanitized)

    return sanitized


def safe_log(level: str, message: str, *args, **kwargs) -> None:
    """Log a message with automatic sanitization of sensitive data."""
    sanitized = sanitize_log_message(message)
    log_func = getattr(logger, level.lower(), logger.info)
    log_func(sanitized, *args, **kwargs)


async def send_teams_notification(notification: Notification) -> dict[str, Any]:
    """Send notification to Microsoft Teams via webhook.

    SECURITY: Webhook URLs are never logged - sanitized automatically.

    Returns:
        Dict with success status and response details
    """
    settings = get_settings()

    if not settings.teams_webhook_url:
        safe_log("warning", "Teams webhook URL not configured")
        return {
            "success": False,
            "error": "Teams webhook URL not configured",
            "channel": NotificationChannel.TEAMS,
        }

    payload = format_spike_alert(notification)

    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                settings.teams_webhook_url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()

        safe_log("info", f"Teams notification sent: {notification.title}")
        return {
            "success": True,
            "status_code": response.status_code,
            "channel": NotificationChannel.TEAMS,
        }

    except httpx.HTTPStatusError as e:
        error_msg = sanitize_log_message(f"HTTP {e.response.status_code}: {e.response.text}")
        safe_log("error", f"Teams webhook returned error: {error_msg}")
        return {
            "success": False,
            "error": "Teams webhook request failed",
            "channel": NotificationChannel.TEAMS,
        }
    except httpx.HTTPError as e:
        error_msg = sanitize_log_message(str(e))
        safe_log("error", f"Failed to send Teams notification: {error_msg}")
        return {
            "success": False,
            "error": "Failed to send notification",
            "channel": NotificationChannel.TEAMS,
        }


async def send_notification(notification: Notification) -> dict[str, Any]:
    """Dispatch a notification after the enabled and severity checks."""
    settings = get_settings()

    if not settings.notification_enabled:
        logger.debug("Notifications disabled in settings")
        return {
            "success": False,
            "error": "Notifications disabled",
            "channel": notification.channel,
        }

    if not severity_meets_threshold(notification.severity, settings.notification_min_severity):
        logger.debug(
            f"Notification severity {notification.severity.value} below threshold "
            f"{settings.notification_min_severity}"
        )
        return {
            "success": False,
            "error": f"Severity {notification.severity.value} below threshold",
            "channel": notification.channel,
        }

    return await send_teams_notification(notification)


def create_dashboard_url() -> str | None:
    """Dashboard link shown on alert cards."""
    base_url = get_settings().dashboard_base_url
    if not base_url:
        return None
    return f"{base_url.rstrip('/')}/dashboard"


def _money(value: Decimal | None) -> str:
    if value is None:
        return "n/a"
    return f"{value:.2f} USD"


def build_spike_notification(user_id: str, evaluation: CostEvaluation) -> Notification:
    """Build the alert for a flagged cost day."""
    event_date: date = evaluation.event_date
    cause = evaluation.cause
    top_resource = cause.resource_name if cause else "Unknown resource"
    top_type = cause.resource_type if cause else "unknown type"
    increase = _money(cause.increase_amount if cause else None)

    return Notification(
        title=f"Azure Cost Spike Detected ({event_date.isoformat()})",
        message=(
            f"A cost spike was detected for {event_date.isoformat()}. "
            f"Top cause: {top_resource} ({top_type}), increase {increase}. "
            f"{evaluation.suggestion_text}"
        ),
        severity=Severity.WARNING,
        facts={
            "Previous day": _money(evaluation.total_yesterday),
            "Latest day": _money(evaluation.total_today),
            "Difference": _money(evaluation.difference),
            "Confidence": evaluation.confidence.value,
        },
        user_id=user_id,
        dashboard_url=create_dashboard_url(),
    )


async def notify_cost_spikes(spike_events: list[tuple[str, CostEvaluation]]) -> int:
    """Send one alert per flagged user, honoring the cooldown.

    Args:
        spike_events: (user id, evaluation) pairs flagged as spikes

    Returns:
        Number of notifications delivered
    """
    sent = 0
    for user_id, evaluation in spike_events:
        if not evaluation.spike_flag:
            continue
        if not should_notify(SPIKE_ALERT_TYPE, user_id):
            continue

        result = await send_notification(build_spike_notification(user_id, evaluation))
        if result.get("success"):
            record_notification_sent(SPIKE_ALERT_TYPE, user_id)
            sent += 1

    if spike_events:
        logger.info(f"Spike notifications sent: {sent} of {len(spike_events)}")
    return sent
