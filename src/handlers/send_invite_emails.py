"""
Invite queue consumer.

Drains invitation messages from SQS and sends each invitee an email through
SES. Malformed messages are skipped. If any send fails, the batch fails as a
whole so SQS redelivers it; after the queue's receive limit the messages go
to the dead-letter queue.

Message body:
{
    "email": "player@example.com",
    "campaignId": "…",
    "token": "…",
    "accept": "https://app.example.com/accept?token=…",
    "subject": "Campaign Invite",
    "message": "You are invited. Use the acceptance link."
}
"""

import json
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import boto3

if TYPE_CHECKING:
    from mypy_boto3_ses import SESClient

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.config import AppConfig  # type: ignore[import-not-found]
    from utils.logging import StructuredLogger, get_logger  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.config import AppConfig
    from ..utils.logging import StructuredLogger, get_logger

DEFAULT_SUBJECT = "Campaign Invite"
DEFAULT_MESSAGE = "You have been invited to join a campaign!"


class InviteDeliveryError(Exception):
    """One or more emails in a batch could not be sent."""

    def __init__(self, failures: Dict[str, Exception]) -> None:
        self.failures = failures
        super().__init__(f"Failed to send {len(failures)} invite email(s)")


def build_email_text(message: Dict[str, Any]) -> str:
    """Plain-text email body for an invite message."""
    intro = message.get("message") or DEFAULT_MESSAGE
    return (
        f"{intro}\n\n"
        "To accept this invitation, click the following link:\n"
        f"{message.get('accept', '')}\n\n"
        "This invitation will expire in 7 days.\n\n"
        "If you have any questions, please contact the campaign Game Master."
    )


class InviteEmailDispatcher:
    """Sends invite emails for a batch of SQS records."""

    def __init__(
        self,
        config: AppConfig,
        ses_client: "SESClient",
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.config = config
        self.ses = ses_client
        self.logger = logger or get_logger(__name__)

    def parse_record(self, record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Decode a record body; None means skip."""
        message_id = record.get("messageId")
        try:
            body = json.loads(record.get("body") or "{}")
        except ValueError:
            self.logger.warning("Skipping message with invalid JSON body", message_id=message_id)
            return None
        if not isinstance(body, dict) or not body.get("email"):
            self.logger.warning("Skipping message without email", message_id=message_id)
            return None
        return body

    def send(self, message: Dict[str, Any]) -> None:
        self.ses.send_email(
            Source=self.config.from_email,
            Destination={"ToAddresses": [message["email"]]},
            Message={
                "Subject": {"Data": message.get("subject") or DEFAULT_SUBJECT},
                "Body": {"Text": {"Data": build_email_text(message)}},
            },
        )

    def dispatch(self, records: List[Dict[str, Any]]) -> int:
        """
        Send an email for every valid record.

        Every valid record gets a send attempt even when earlier ones fail.

        Returns:
            Number of emails sent

        Raises:
            InviteDeliveryError: If any send failed
        """
        sent = 0
        failures: Dict[str, Exception] = {}
        for record in records:
            message = self.parse_record(record)
            if message is None:
                continue
            message_id = str(record.get("messageId"))
            try:
                self.send(message)
            except Exception as e:
                self.logger.error(
                    "Failed to send invite email",
                    message_id=message_id,
                    email=message["email"],
                    error=str(e),
                )
                failures[message_id] = e
                continue
            sent += 1
            self.logger.info("Sent invite email", message_id=message_id, email=message["email"])

        if failures:
            raise InviteDeliveryError(failures)
        return sent


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    SQS event source handler.

    Returns:
        {"statusCode": 200, "body": "Success", "sent": n}

    Raises:
        InviteDeliveryError: So SQS redelivers the batch
    """
    logger = get_logger(__name__, getattr(context, "aws_request_id", None))
    records = event.get("Records", [])
    logger.info("Processing invite batch", count=len(records))

    dispatcher = InviteEmailDispatcher(AppConfig.from_env(), boto3.client("ses"), logger=logger)
    sent = dispatcher.dispatch(records)

    logger.info("Invite batch complete", sent=sent)
    return {"statusCode": 200, "body": "Success", "sent": sent}
