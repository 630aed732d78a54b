"""
app/connectors package marker.
"""

from app.connectors.base import BaseConnector, ConnectorRequestError
from app.connectors.resend_mailer import EmailNotConfiguredError, ResendMailer
from app.connectors.shopify_connector import ShopifyAuthError, ShopifyConnector

__all__ = [
    "BaseConnector",
    "ConnectorRequestError",
    "EmailNotConfiguredError",
    "ResendMailer",
    "ShopifyAuthError",
    "ShopifyConnector",
]
