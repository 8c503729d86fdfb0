"""
Email gateway client for sending emails via HTTP gateway.

Requests are authenticated with an HMAC-SHA256 signature of the JSON body.
Used for magic-link logins and for notifying customers of sent invoices.
"""

import hashlib
import hmac
import json
import logging

import requests

logger = logging.getLogger(__name__)


class EmailGatewayError(Exception):
    """Raised when email gateway request fails."""


class EmailGatewayClient:
    """Send emails via HTTP gateway with HMAC signature verification."""

    SENDERS = ("auth", "billing")

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str, timeout: float = 10):
        """
        Initialize with gateway credentials.

        Raises:
            ValueError: If any credential is empty
        """
        if not gateway_url:
            raise ValueError("gateway_url is required")
        if not api_key:
            raise ValueError("api_key is required")
        if not hmac_secret:
            raise ValueError("hmac_secret is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self.hmac_secret = hmac_secret
        self.timeout = timeout

    def _signature(self, body: str) -> str:
        return hmac.new(
            self.hmac_secret.encode("utf-8"),
            body.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def _sign_and_send(self, payload: dict) -> None:
        """
        Sign payload with HMAC and send to gateway.

        Raises:
            EmailGatewayError: On any failure
        """
        body = json.dumps(payload, separators=(",", ":"))
        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": self._signature(body),
        }

        try:
            response = requests.post(
                self.gateway_url,
                data=body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error("Email gateway connection failed: %s", e)
            raise EmailGatewayError(f"Connection failed: {e}") from e

        try:
            response_data = response.json()
        except ValueError:
            logger.error("Email gateway returned invalid JSON: %s", response.text)
            raise EmailGatewayError("Invalid response from gateway")

        if response.status_code != 200 or not response_data.get("success"):
            error_msg = response_data.get("message", "Unknown error")
            logger.error("Email gateway error: %s", error_msg)
            raise EmailGatewayError(f"Gateway error: {error_msg}")

    def send_magic_link(self, email: str, token: str, app_url: str) -> None:
        """
        Send a login link.

        Raises:
            EmailGatewayError: On any failure
        """
        self._sign_and_send({"email": email, "token": token, "app_url": app_url})
        logger.info("Magic link email sent to %s", email)

    def send_email(self, to: str, subject: str, body: str, sender: str = "billing") -> None:
        """
        Send a plain text email.

        Raises:
            ValueError: If sender is not one of SENDERS
            EmailGatewayError: On gateway failure
        """
        if sender not in self.SENDERS:
            raise ValueError(f"sender must be one of {self.SENDERS}, got '{sender}'")

        self._sign_and_send({
            "type": "custom",
            "email": to,
            "subject": subject,
            "body": body,
            "sender": sender,
        })
        logger.info("Email sent to %s: %s", to, subject)
