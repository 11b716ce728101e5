"""Webhook notifications for Discord and Slack."""

import logging
from datetime import datetime, timezone
from typing import Dict, Sequence

import httpx

from netpinger.probe.group import Verdict

logger = logging.getLogger(__name__)


def _is_slack_webhook(url: str) -> bool:
    """Detect if webhook URL is for Slack."""
    return "slack.com" in url or "hooks.slack" in url


def _build_discord_embed(verdict: Verdict, targets: Sequence[str]) -> Dict:
    """Build Discord embed format."""
    alive = verdict is Verdict.ALIVE
    return {
        "embeds": [{
            "title": f"Network is {verdict.value.upper()}",
            "description": "Monitored hosts: " + ", ".join(f"`{t}`" for t in targets),
            "color": 65280 if alive else 16711680,  # Green / red
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "fields": [
                {"name": "Verdict", "value": verdict.value.upper(), "inline": True},
                {"name": "Hosts", "value": str(len(targets)), "inline": True},
            ],
        }],
    }


def _build_slack_payload(verdict: Verdict, targets: Sequence[str]) -> Dict:
    """Build Slack message format."""
    alive = verdict is Verdict.ALIVE
    return {
        "attachments": [{
            "color": "#00FF00" if alive else "#FF0000",
            "title": f"Network is {verdict.value.upper()}",
            "text": "Monitored hosts: " + ", ".join(targets),
            "fields": [
                {"title": "Verdict", "value": verdict.value.upper(), "short": True},
                {"title": "Hosts", "value": str(len(targets)), "short": True},
            ],
            "ts": int(datetime.now(timezone.utc).timestamp()),
        }],
    }


async def send_verdict_webhook(
    webhook_url: str,
    verdict: Verdict,
    targets: Sequence[str],
    timeout: float = 10.0,
) -> bool:
    """Post a group verdict change (Discord/Slack compatible).

    Args:
        webhook_url: Destination URL.
        verdict: New group verdict.
        targets: Monitored addresses, listed in the message.
        timeout: HTTP timeout in seconds.

    Returns:
        True if webhook sent successfully, False otherwise.
    """
    if _is_slack_webhook(webhook_url):
        payload = _build_slack_payload(verdict, targets)
    else:
        # Default to Discord format
        payload = _build_discord_embed(verdict, targets)

    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                webhook_url,
                json=payload,
                timeout=timeout,
            )
            response.raise_for_status()

        logger.info("Webhook notification sent (%s)", verdict.value)
        return True

    except httpx.HTTPStatusError as e:
        logger.error("Webhook HTTP error: %s - %s", e.response.status_code, e.response.text[:200])
        return False

    except Exception as e:
        logger.error("Failed to send webhook: %s", e)
        return False
