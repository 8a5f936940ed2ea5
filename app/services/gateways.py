"""
Delivery channel gateways.

Email: Resend (preferred) or SendGrid (legacy fallback).
SMS: Twilio.

Gateways are constructed once by ``build_email_gateway`` /
``build_sms_gateway`` and injected into DispatchEngine, so tests can swap
in fakes without touching the network.
"""
import logging
import re

from app.errors import ChannelUnavailableError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Phone number formatting
# ---------------------------------------------------------------------------
def format_phone(phone):
    """Ensure a US phone number has the +1 international prefix.

    Handles common input formats:
        "3055551234"       -> "+13055551234"
        "13055551234"      -> "+13055551234"
        "+13055551234"     -> "+13055551234"
        "(305) 555-1234"   -> "+13055551234"
        ""                 -> ""
        None               -> ""

    Non-US numbers that already start with '+' are returned as-is.
    """
    if not phone:
        return ""

    stripped = re.sub(r"[^\d+]", "", phone.strip())
    if not stripped:
        return ""

    if stripped.startswith("+"):
        return stripped

    digits = re.sub(r"\D", "", stripped)

    if len(digits) == 10:
        return "+1{}".format(digits)
    return "+{}".format(digits)


# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------
class EmailGateway:
    """send(to, from_, subject, html, text=None) -> bool"""

    def send(self, to, from_, subject, html, text=None):
        raise NotImplementedError


class ResendEmailGateway(EmailGateway):
    """Send via the Resend API"""

    def __init__(self, api_key, from_name=None, timeout=10):
        self.api_key = api_key
        self.from_name = from_name
        self.timeout = timeout

    def send(self, to, from_, subject, html, text=None):
        import resend
        resend.api_key = self.api_key
        resend.default_http_client = resend.RequestsClient(timeout=self.timeout)

        params = {
            "from": _sender(from_, self.from_name),
            "to": [to],
            "subject": subject,
            "html": html,
        }
        if text:
            params["text"] = text

        response = resend.Emails.send(params)
        message_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        logger.info("Email sent via Resend to %s (id: %s)", to, message_id)
        return bool(message_id)


class SendGridEmailGateway(EmailGateway):
    """Send via SendGrid"""

    def __init__(self, api_key, from_name=None, timeout=10):
        self.api_key = api_key
        self.from_name = from_name
        self.timeout = timeout

    def send(self, to, from_, subject, html, text=None):
        from sendgrid import SendGridAPIClient
        from sendgrid.helpers.mail import Mail

        message = Mail(
            from_email=(from_, self.from_name) if self.from_name else from_,
            to_emails=to,
            subject=subject,
            html_content=html,
            plain_text_content=text,
        )
        client = SendGridAPIClient(self.api_key)
        client.client.timeout = self.timeout
        response = client.send(message)
        logger.info("Email sent via SendGrid to %s (status: %s)", to, response.status_code)
        return 200 <= response.status_code < 300


class LogEmailGateway(EmailGateway):
    """Dev mode: no email provider configured, log the message instead"""

    def __init__(self, report_success=False):
        self.report_success = report_success

    def send(self, to, from_, subject, html, text=None):
        logger.info("[EMAIL-DEV] To %s: %s - %s", to, subject, (text or html)[:120])
        return self.report_success


def _sender(address, name):
    return "{} <{}>".format(name, address) if name else address


# ---------------------------------------------------------------------------
# SMS
# ---------------------------------------------------------------------------
class SmsGateway:
    """send(to, from_, body) -> message id; is_available() -> bool"""

    def is_available(self):
        raise NotImplementedError

    def send(self, to, from_, body):
        raise NotImplementedError


class TwilioSmsGateway(SmsGateway):
    """Send SMS via Twilio; the REST client is created on first use"""

    def __init__(self, account_sid, auth_token, timeout=10):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.timeout = timeout
        self._client = None

    def _get_client(self):
        if self._client is None and self.account_sid and self.auth_token:
            from twilio.http.http_client import TwilioHttpClient
            from twilio.rest import Client
            self._client = Client(
                self.account_sid,
                self.auth_token,
                http_client=TwilioHttpClient(timeout=self.timeout),
            )
        return self._client

    def is_available(self):
        try:
            return self._get_client() is not None
        except Exception:
            logger.exception("Failed to initialise Twilio client")
            return False

    def send(self, to, from_, body):
        formatted = format_phone(to)
        if not formatted:
            raise ChannelUnavailableError("Invalid phone number {!r}".format(to))
        if not from_:
            raise ChannelUnavailableError("No SMS sender number configured")

        client = self._get_client()
        if client is None:
            raise ChannelUnavailableError("Twilio is not configured")

        try:
            message = client.messages.create(body=body, from_=from_, to=formatted)
        except Exception as exc:
            raise ChannelUnavailableError("Twilio send to {} failed: {}".format(formatted, exc)) from exc

        logger.info("SMS sent to %s (SID: %s)", formatted, message.sid)
        return message.sid


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
def build_email_gateway(config, debug=False):
    timeout = config.get('CHANNEL_TIMEOUT_SECONDS', 10)
    if config.get('RESEND_API_KEY'):
        return ResendEmailGateway(config['RESEND_API_KEY'], config.get('EMAIL_FROM_NAME'), timeout=timeout)
    if config.get('SENDGRID_API_KEY'):
        return SendGridEmailGateway(config['SENDGRID_API_KEY'], config.get('EMAIL_FROM_NAME'), timeout=timeout)
    logger.warning("No email provider configured; review emails will only be logged")
    return LogEmailGateway(report_success=debug)


def build_sms_gateway(config):
    return TwilioSmsGateway(
        config.get('TWILIO_ACCOUNT_SID'),
        config.get('TWILIO_AUTH_TOKEN'),
        timeout=config.get('CHANNEL_TIMEOUT_SECONDS', 10),
    )
