"""SMS Client via Twilio - Imperative Shell.

This module texts a user's emergency contacts when they raise an
emergency. Failures are reported in the returned responses, never
raised; an emergency alert must not be lost because a text failed.

All I/O is contained here; message formatting is in the core module.
"""

import logging
from dataclasses import dataclass

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from src.core.config import SmsSettings
from src.core.contacts import EmergencyContact, normalize_phone


logger = logging.getLogger(__name__)


@dataclass
class SmsResponse:
    """Response from an SMS send attempt.

    Attributes:
        success: Whether the message was accepted by Twilio
        to_number: Number the message was addressed to
        message_sid: Twilio message SID if successful
        error: Error message if failed
    """
    success: bool
    to_number: str
    message_sid: str | None = None
    error: str | None = None


@dataclass
class SmsCredentials:
    """Twilio credentials for the messaging API.

    Attributes:
        account_sid: Twilio Account SID
        auth_token: Twilio Auth Token
        from_number: Sender number in E.164 format
    """
    account_sid: str
    auth_token: str
    from_number: str

    @classmethod
    def from_settings(cls, settings: SmsSettings) -> "SmsCredentials":
        return cls(
            account_sid=settings.account_sid,
            auth_token=settings.auth_token,
            from_number=settings.from_number,
        )


class SmsClient:
    """Client for sending text messages via Twilio.

    This is part of the imperative shell - it handles I/O.
    """

    def __init__(self, credentials: SmsCredentials) -> None:
        self.credentials = credentials
        self._client: Client | None = None

    @property
    def client(self) -> Client:
        """Lazy initialization of the Twilio REST client."""
        if self._client is None:
            self._client = Client(self.credentials.account_sid, self.credentials.auth_token)
        return self._client

    def send_message(self, text: str, to_number: str) -> SmsResponse:
        """Send one text message.

        This method performs HTTP I/O.

        Args:
            text: Message body
            to_number: Recipient phone number (separators allowed)

        Returns:
            SmsResponse indicating success or failure
        """
        to_number = normalize_phone(to_number)
        logger.info("Sending SMS via Twilio to %s", to_number)

        try:
            message = self.client.messages.create(
                body=text,
                from_=self.credentials.from_number,
                to=to_number,
            )

            logger.info("SMS sent: %s", message.sid)
            return SmsResponse(success=True, to_number=to_number, message_sid=message.sid)

        except TwilioRestException as e:
            logger.error("Twilio API error: %s", str(e))
            return SmsResponse(success=False, to_number=to_number, error=f"Twilio error: {e.msg}")
        except Exception as e:
            logger.error("SMS send failed: %s", str(e))
            return SmsResponse(success=False, to_number=to_number, error=str(e))

    def send_to_contacts(
        self,
        text: str,
        contacts: list[EmergencyContact],
    ) -> list[SmsResponse]:
        """Text every contact in the given order.

        A failure for one contact does not stop delivery to the rest.

        Args:
            text: Message body
            contacts: Contacts to notify, primary first

        Returns:
            One response per contact
        """
        responses = [self.send_message(text, contact.phone) for contact in contacts]

        failed = sum(1 for r in responses if not r.success)
        if failed:
            logger.warning("%d of %d emergency texts failed", failed, len(responses))

        return responses
