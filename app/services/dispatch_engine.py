"""
Sends one follow-up stage over every enabled channel.

Channel failures (exceptions, timeouts, an unavailable SMS gateway) are
logged and skipped; the stage counts as delivered when at least one channel
succeeds. Store errors are not caught here.
"""
import logging
from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError

from app.email_templates import review_request_html
from app.errors import ChannelUnavailableError
from app.models.base import utcnow
from app.models.review_request import STAGE_INITIAL
from app.services.message_composer import build_variables, strip_html

logger = logging.getLogger(__name__)

CHANNEL_EMAIL = 'email'
CHANNEL_SMS = 'sms'

DispatchResult = namedtuple('DispatchResult', ['success', 'channels'])


class DispatchEngine:
    """Composes and delivers a stage, then records it via RequestTracker"""

    def __init__(self, tracker, composer, ledger, email_gateway, sms_gateway,
                 email_from, sms_from=None, timeout=10, max_channel_workers=4):
        self.tracker = tracker
        self.composer = composer
        self.ledger = ledger
        self.email_gateway = email_gateway
        self.sms_gateway = sms_gateway
        self.email_from = email_from
        self.sms_from = sms_from
        self.timeout = timeout
        # one pool per channel, so a hung provider only starves its own channel
        self._executors = {
            channel: ThreadPoolExecutor(max_workers=max_channel_workers,
                                        thread_name_prefix="review-{}".format(channel))
            for channel in (CHANNEL_EMAIL, CHANNEL_SMS)
        }

    def send_stage(self, stage, request, status, settings, technician, company, check_in=None, now=None):
        """
        Deliver ``stage`` for one review request

        Returns:
            DispatchResult: success is True when any channel delivered
        """
        review_link = self.ledger.link_for_request(request)
        variables = build_variables(
            stage,
            customer_name=status.customer_name,
            company_name=company.name,
            technician_name=technician.name if technician else None,
            review_link=review_link,
            service_type=check_in.job_type if check_in else request.job_type,
            location=check_in.city if check_in else None,
        )
        if request.custom_message:
            variables['customMessage'] = request.custom_message

        channels = []

        if settings.enable_email_requests and status.customer_email:
            if self._send_email(stage, request, status, settings, technician, company, variables, review_link):
                channels.append(CHANNEL_EMAIL)

        if settings.enable_sms_requests and status.customer_phone and self._sms_available():
            if self._send_sms(stage, status, variables):
                channels.append(CHANNEL_SMS)

        if not channels:
            logger.warning("No channel delivered %s stage for review request %s; will retry next pass",
                           stage, request.id)
            if stage == STAGE_INITIAL:
                self.tracker.mark_request_failed(request.id)
            return DispatchResult(False, ())

        self.tracker.advance_stage(status.id, stage, now or utcnow())
        logger.info("Sent %s stage for review request %s via %s", stage, request.id, ', '.join(channels))
        return DispatchResult(True, tuple(channels))

    def shutdown(self):
        """Release the channel pools without waiting on calls that already timed out"""
        for executor in self._executors.values():
            executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------
    def _send_email(self, stage, request, status, settings, technician, company, variables, review_link):
        message = self.composer.compose(stage, settings, variables)
        html = review_request_html(
            company.name,
            message.body,
            review_link=review_link,
            technician_name=variables.get('technicianName'),
            service_type=variables.get('serviceType'),
            include_service_details=settings.include_service_details,
            unsubscribe_url=self.ledger.unsubscribe_link(request.token) if request.token else None,
        )
        try:
            delivered = self._call(CHANNEL_EMAIL, self.email_gateway.send, status.customer_email,
                                   self.email_from, message.subject, html, strip_html(message.body))
        except Exception:
            logger.exception("Email channel failed for review request %s", request.id)
            return False
        if not delivered:
            logger.warning("Email gateway did not accept %s stage for review request %s", stage, request.id)
        return bool(delivered)

    def _send_sms(self, stage, status, variables):
        body = self.composer.compose_sms(stage, variables)
        try:
            message_id = self._call(CHANNEL_SMS, self.sms_gateway.send, status.customer_phone, self.sms_from, body)
        except Exception:
            logger.exception("SMS channel failed for status %s", status.id)
            return False
        return message_id is not None

    def _sms_available(self):
        if self.sms_gateway is None:
            return False
        try:
            return bool(self.sms_gateway.is_available())
        except Exception:
            logger.exception("SMS availability check failed")
            return False

    def _call(self, channel, fn, *args):
        """Run a channel call on that channel's pool with the configured timeout"""
        future = self._executors[channel].submit(fn, *args)
        try:
            return future.result(timeout=self.timeout)
        except FuturesTimeoutError as exc:
            future.cancel()
            raise ChannelUnavailableError(
                '{} timed out after {}s'.format(getattr(fn, '__qualname__', fn), self.timeout)
            ) from exc
