"""
EliteSpeed Webhook
"""
from .handler import EliteSpeedWebhookHandler

__all__ = ["EliteSpeedWebhookHandler"]
