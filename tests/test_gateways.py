"""
Channel gateway tests (no network)
"""
import pytest

from app.errors import ChannelUnavailableError
from app.services.gateways import (
    LogEmailGateway,
    ResendEmailGateway,
    SendGridEmailGateway,
    TwilioSmsGateway,
    build_email_gateway,
    build_sms_gateway,
    format_phone,
)


class TestFormatPhone:

    @pytest.mark.parametrize('raw,expected', [
        ('3055551234', '+13055551234'),
        ('13055551234', '+13055551234'),
        ('+13055551234', '+13055551234'),
        ('(305) 555-1234', '+13055551234'),
        ('+44 20 7946 0958', '+442079460958'),
        ('', ''),
        (None, ''),
    ])
    def test_format_phone(self, raw, expected):
        assert format_phone(raw) == expected


class TestEmailGatewayFactory:

    def test_resend_preferred(self):
        gateway = build_email_gateway({'RESEND_API_KEY': 're_x', 'SENDGRID_API_KEY': 'SG.x'})
        assert isinstance(gateway, ResendEmailGateway)

    def test_sendgrid_fallback(self):
        gateway = build_email_gateway({'RESEND_API_KEY': '', 'SENDGRID_API_KEY': 'SG.x'})
        assert isinstance(gateway, SendGridEmailGateway)

    def test_log_gateway_without_provider(self):
        assert isinstance(build_email_gateway({}), LogEmailGateway)

    def test_log_gateway_only_succeeds_in_debug(self):
        assert build_email_gateway({}, debug=True).send('a@example.com', 'b@example.com', 'Hi', '<p>Hi</p>')
        assert not build_email_gateway({}).send('a@example.com', 'b@example.com', 'Hi', '<p>Hi</p>')

    @pytest.mark.parametrize('key', ['RESEND_API_KEY', 'SENDGRID_API_KEY'])
    def test_channel_timeout_is_passed(self, key):
        gateway = build_email_gateway({key: 'secret', 'CHANNEL_TIMEOUT_SECONDS': 2.5})
        assert gateway.timeout == 2.5


class TestEmailGatewayTimeouts:

    def test_resend_request_carries_timeout(self, monkeypatch):
        import resend
        monkeypatch.setattr(resend, 'api_key', resend.api_key)
        monkeypatch.setattr(resend, 'default_http_client', resend.default_http_client)
        monkeypatch.setattr(resend.Emails, 'send', lambda params: {'id': 'em_123'})

        gateway = ResendEmailGateway('re_x', timeout=3)

        assert gateway.send('a@example.com', 'b@example.com', 'Hi', '<p>Hi</p>') is True
        assert isinstance(resend.default_http_client, resend.RequestsClient)
        assert resend.default_http_client._timeout == 3

    def test_sendgrid_request_carries_timeout(self, monkeypatch):
        from sendgrid import SendGridAPIClient
        seen = []

        def fake_send(client, message):
            seen.append(client.client.timeout)
            return type('Response', (), {'status_code': 202})()

        monkeypatch.setattr(SendGridAPIClient, 'send', fake_send)

        gateway = SendGridEmailGateway('SG.x', timeout=3)

        assert gateway.send('a@example.com', 'b@example.com', 'Hi', '<p>Hi</p>') is True
        assert seen == [3]


class TestTwilioGateway:

    def test_unconfigured_is_unavailable(self):
        gateway = build_sms_gateway({'TWILIO_ACCOUNT_SID': '', 'TWILIO_AUTH_TOKEN': ''})
        assert isinstance(gateway, TwilioSmsGateway)
        assert gateway.is_available() is False

    def test_unconfigured_send_raises(self):
        gateway = TwilioSmsGateway(None, None)
        with pytest.raises(ChannelUnavailableError):
            gateway.send('3055551234', '+15550000000', 'hello')

    def test_invalid_number_raises(self):
        gateway = TwilioSmsGateway('AC123', 'token')
        with pytest.raises(ChannelUnavailableError):
            gateway.send('', '+15550000000', 'hello')

    def test_missing_sender_raises(self):
        gateway = TwilioSmsGateway('AC123', 'token')
        with pytest.raises(ChannelUnavailableError):
            gateway.send('3055551234', None, 'hello')

    def test_send_uses_client(self):
        class FakeMessages:
            def __init__(self):
                self.calls = []

            def create(self, **kwargs):
                self.calls.append(kwargs)
                return type('Message', (), {'sid': 'SM123'})()

        gateway = TwilioSmsGateway('AC123', 'token')
        messages = FakeMessages()
        gateway._client = type('Client', (), {'messages': messages})()

        assert gateway.send('(305) 555-1234', '+15550000000', 'hello') == 'SM123'
        assert messages.calls == [{'body': 'hello', 'from_': '+15550000000', 'to': '+13055551234'}]
