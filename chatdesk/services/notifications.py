"""
WhatsApp notification dispatch for record status changes.

The dispatcher raises on delivery errors; callers that treat notification
as best-effort wrap it with run_best_effort.
"""
import logging
from functools import lru_cache
from typing import Optional

import httpx

from chatdesk.config import WHATSAPP_API_URL, WHATSAPP_TIMEOUT_SECONDS
from chatdesk.models.enums import RecordType

logger = logging.getLogger(__name__)

STATUS_EMOJI = {
    "PENDING": "⏳",
    "IN_PROGRESS": "🔄",
    "RESOLVED": "✅",
    "CLOSED": "🔒",
    "CANCELLED": "❌",
    "CONFIRMED": "✅",
    "COMPLETED": "🎉",
    "NO_SHOW": "❌",
}
DEFAULT_EMOJI = "📋"


def build_status_message(
    record_type: RecordType,
    reference: str,
    status: str,
    remarks: Optional[str] = None
) -> str:
    """Compose the citizen-facing status update text."""
    status = getattr(status, "value", status)
    emoji = STATUS_EMOJI.get(status, DEFAULT_EMOJI)
    type_name = record_type.value.capitalize()

    message = f"{emoji} *{type_name} Status Update*\n\n"
    message += f"ID: *{reference}*\n"
    message += f"Status: *{status.replace('_', ' ', 1)}*\n"

    if remarks:
        message += f"\nRemarks: {remarks}\n"

    message += "\nThank you for your patience. We are committed to serving you better."
    return message


class WhatsAppClient:
    """Thin wrapper over the WhatsApp Cloud API messages endpoint."""

    def __init__(
        self,
        base_url: str = WHATSAPP_API_URL,
        timeout: float = WHATSAPP_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def send_text(self, phone_number_id: str, access_token: str, to: str, body: str) -> Optional[str]:
        """
        Send a plain text message.

        Returns the provider message id when the response carries one.
        Raises httpx.HTTPError on transport failures and non-2xx responses.
        """
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": body},
        }
        response = self._client.post(
            f"/{phone_number_id}/messages",
            json=payload,
            headers={"Authorization": f"Bearer {access_token}"}
        )
        response.raise_for_status()

        messages = response.json().get("messages") or []
        return messages[0].get("id") if messages else None

    def close(self) -> None:
        self._client.close()


@lru_cache(maxsize=1)
def get_default_client() -> WhatsAppClient:
    """Shared client for the process."""
    return WhatsAppClient()


class WhatsAppNotifier:
    """Sends a status update to the citizen behind a record."""

    def __init__(self, client: Optional[WhatsAppClient] = None):
        self._client = client

    @property
    def client(self) -> WhatsAppClient:
        if self._client is None:
            self._client = get_default_client()
        return self._client

    def dispatch(self, record, new_status, remarks: Optional[str] = None) -> Optional[str]:
        """
        Notify the citizen of a record's new status.

        Skips quietly when the company has no WhatsApp configuration or the
        record has no contact number.
        """
        company = record.company
        if company is None or not company.whatsapp_configured:
            logger.info(
                f"WhatsApp not configured for company {record.company_id}; "
                f"skipping notification for {record.reference}"
            )
            return None

        contact = record.citizen_contact
        if not contact:
            logger.info(f"No citizen contact on {record.reference}; skipping notification")
            return None

        message = build_status_message(record.record_type, record.reference, new_status, remarks)
        message_id = self.client.send_text(
            company.whatsapp_phone_number_id,
            company.whatsapp_access_token,
            contact,
            message
        )
        logger.info(f"WhatsApp notification sent to {contact} for {record.reference}")
        return message_id
