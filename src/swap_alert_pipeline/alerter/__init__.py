"""Alerting layer - Payload assembly and sink delivery."""

from swap_alert_pipeline.alerter.formatter import build_alert_payload, build_tags
from swap_alert_pipeline.alerter.forwarder import ForwardError, WebhookForwarder
from swap_alert_pipeline.alerter.models import AlertPayload

__all__ = [
    "AlertPayload",
    "ForwardError",
    "WebhookForwarder",
    "build_alert_payload",
    "build_tags",
]
