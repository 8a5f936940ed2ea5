"""
Review request intake from completed check-ins.

Targeting filters in the tenant's settings (service types, minimum invoice
amount, positive experiences only) are applied here, once, when the request
is created. The reconciliation pass never re-evaluates them.
"""
import logging
from decimal import Decimal

from app import db
from app.errors import NotFoundError
from app.models import CheckIn

logger = logging.getLogger(__name__)


class ReviewAutomationService:
    """Creates review requests from check-ins and reports tenant stats"""

    def __init__(self, tracker, settings_provider):
        self.tracker = tracker
        self.settings_provider = settings_provider

    def skip_reason(self, check_in, settings):
        """Why a check-in should not get a review request, or None"""
        if not settings.is_active:
            return 'review automation is not active'

        if not check_in.customer_name or not (check_in.customer_email or check_in.customer_phone):
            return 'missing customer name or contact'

        if settings.target_service_types and check_in.job_type not in settings.target_service_types:
            return f'job type {check_in.job_type!r} is not targeted'

        minimum = Decimal(settings.target_minimum_invoice_amount or 0)
        if minimum > 0 and Decimal(check_in.invoice_amount or 0) < minimum:
            return 'invoice amount below minimum'

        if settings.target_positive_experiences_only and check_in.positive_experience is not True:
            return 'visit not marked as a positive experience'

        return None

    def create_request_from_check_in(self, check_in_id, technician_id=None):
        """
        Create a review request and its follow-up status for a check-in

        Returns:
            ReviewRequestStatus, or None when the targeting rules skip it
        """
        check_in = db.session.get(CheckIn, check_in_id)
        if check_in is None:
            raise NotFoundError(f'Check-in {check_in_id} not found')

        settings = self.settings_provider.get(check_in.company_id)
        reason = self.skip_reason(check_in, settings)
        if reason:
            logger.info("Not requesting a review for check-in %s: %s", check_in_id, reason)
            return None

        review_request = self.tracker.create_request(
            {
                'name': check_in.customer_name,
                'email': check_in.customer_email,
                'phone': check_in.customer_phone,
            },
            technician_id or check_in.technician_id,
            check_in.company_id,
            check_in.job_type,
        )
        status = self.tracker.create_status(review_request.id, check_in_id=check_in.id)
        logger.info("Queued review request %s from check-in %s", review_request.id, check_in_id)
        return status

    def get_stats(self, company_id):
        return self.tracker.stats(company_id)
