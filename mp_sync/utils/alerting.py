"""
Alerting Module
Sends notifications for marketplace sync failures and run summaries.

Channels:
- Slack webhook (if SLACK_WEBHOOK_URL is configured)
- Console logging (always)
- GitHub Actions annotations (if in CI)
"""

import os
import logging
import requests
from datetime import datetime, timezone
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _fields_block(fields: Dict[str, str]) -> dict:
    return {
        "type": "section",
        "fields": [{"type": "mrkdwn", "text": f"*{name}:*\n{value}"} for name, value in fields.items()]
    }


class AlertManager:
    """
    Handles alerting for sync runs.

    Usage:
        alert = AlertManager()
        alert.alert_failure("wb-stocks", "leeshop", "WB API error 401")
        alert.send_summary("wb-stocks", "2026-02-01--2026-02-07", [result])
    """

    def __init__(self, slack_webhook: Optional[str] = None):
        self.slack_webhook = slack_webhook or os.environ.get("SLACK_WEBHOOK_URL")
        self.is_ci = os.environ.get("CI") == "true" or os.environ.get("GITHUB_ACTIONS") == "true"

    def _send_slack(self, title: str, color: str, fields: Dict[str, str], footer: str) -> bool:
        """Send one attachment to the Slack webhook."""
        if not self.slack_webhook:
            logger.debug("Slack webhook not configured, skipping")
            return False

        payload = {
            "attachments": [{
                "color": color,
                "blocks": [
                    {"type": "header", "text": {"type": "plain_text", "text": title, "emoji": True}},
                    _fields_block(fields),
                    {"type": "context", "elements": [{"type": "mrkdwn", "text": footer}]},
                ]
            }]
        }

        try:
            response = requests.post(self.slack_webhook, json=payload, timeout=10)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Slack notification error: {e}")
            return False

        if response.status_code != 200:
            logger.warning(f"Slack notification failed: {response.status_code}")
            return False

        logger.debug("Slack notification sent")
        return True

    def _github_annotation(self, level: str, message: str):
        """Output GitHub Actions annotation."""
        if self.is_ci:
            print(f"::{level}::{message}")

    def alert_failure(self, feature: str, store: str, error: str):
        """
        Alert when a feature run fails.

        Args:
            feature: Feature name ('wb-stocks', 'ozon-fbo-orders', ...)
            store: Store identifier
            error: Error message
        """
        logger.error(f"SYNC FAILED: {feature} - {store} - {error}")
        self._github_annotation("error", f"Sync failed: {feature}/{store}: {error}")
        self._send_slack(
            "Marketplace Sync Failed",
            "#FF0000",
            {"Feature": feature, "Store": store, "Error": error[:500]},
            f"Time: {_utc_timestamp()}"
        )

    def send_summary(
        self,
        feature: str,
        period: str,
        results: List[Dict],
        duration_seconds: float = 0
    ):
        """
        Log the end-of-run summary; Slack only hears about runs with failures.

        Args:
            feature: Feature name
            period: Period label, e.g. '2026-02-01' or '2026-02-01--2026-02-07'
            results: Result dicts with 'status' and 'row_count'
            duration_seconds: Total processing time
        """
        failed = [r for r in results if r.get("status") == "failed"]
        total_rows = sum(r.get("row_count") or 0 for r in results)
        status_text = "Success" if not failed else f"Failed ({len(failed)}/{len(results)})"
        duration_str = f"{duration_seconds:.1f}s" if duration_seconds else "N/A"

        logger.info(
            f"SYNC SUMMARY: {feature} for {period} - {status_text} - "
            f"{total_rows} rows, {duration_str}"
        )

        if failed:
            self._send_slack(
                f"Marketplace Sync {status_text}",
                "#FFA500",
                {"Feature": feature, "Period": period, "Total Rows": f"{total_rows:,}"},
                f"Duration: {duration_str} | Time: {_utc_timestamp()}"
            )
