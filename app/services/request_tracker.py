"""
Persistence operations for review requests and their follow-up status.

Stage advances and event recording are single conditional UPDATEs so that
two reconciliation workers racing on the same row cannot both win.
"""
import logging

from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.errors import ConflictError, NotFoundError, StoreError, ValidationError
from app.models import ReviewRequest, ReviewRequestStatus
from app.models.base import as_naive_utc, utcnow
from app.models.review_request import (
    STAGES, STAGE_COLUMNS, STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_COMPLETED,
    STATUS_UNSUBSCRIBED, TERMINAL_STATUSES, previous_stage,
)
from app.services.token_ledger import new_token
from app.utils import validate_email, validate_phone

logger = logging.getLogger(__name__)

EVENT_CLICK = 'click'
EVENT_SUBMIT = 'submit'
EVENT_UNSUBSCRIBE = 'unsubscribe'
EVENTS = (EVENT_CLICK, EVENT_SUBMIT, EVENT_UNSUBSCRIBE)


class RequestTracker:
    """Reads and state transitions for ReviewRequest / ReviewRequestStatus"""

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    def create_request(self, customer_info, technician_id, company_id, job_type):
        """
        Create a pending review request with a fresh token

        Args:
            customer_info (dict): name, email, phone, custom_message
            technician_id: technician who performed the visit
            company_id: tenant id
            job_type (str): service performed

        Returns:
            ReviewRequest
        """
        name = (customer_info.get('name') or '').strip()
        email = (customer_info.get('email') or '').strip() or None
        phone = (customer_info.get('phone') or '').strip() or None

        errors = {}
        if not name:
            errors['name'] = 'Customer name is required'
        if not email and not phone:
            errors['contact'] = 'An email address or phone number is required'
        if email and not validate_email(email):
            errors['email'] = 'Invalid email address'
        if phone and not validate_phone(phone):
            errors['phone'] = 'Invalid phone number'
        if errors:
            raise ValidationError('Invalid customer information', errors)

        review_request = ReviewRequest(
            company_id=company_id,
            technician_id=technician_id,
            customer_name=name,
            email=email,
            phone=phone,
            method='email' if email else 'sms',
            job_type=job_type,
            custom_message=customer_info.get('custom_message'),
            token=new_token(),
            status='pending',
        )
        self._commit_new(review_request)
        logger.info("Created review request %s for company %s", review_request.id, company_id)
        return review_request

    def create_status(self, request_id, check_in_id=None, contact=None):
        """Create the follow-up status record for a review request"""
        review_request = self.get_request(request_id)
        contact = contact or {}

        email = contact.get('email', review_request.email)
        phone = contact.get('phone', review_request.phone)
        name = contact.get('name', review_request.customer_name)

        status = ReviewRequestStatus(
            company_id=review_request.company_id,
            review_request_id=review_request.id,
            check_in_id=check_in_id,
            technician_id=review_request.technician_id,
            customer_id=contact.get('customer_id') or (email or phone).lower(),
            customer_name=name,
            customer_email=email,
            customer_phone=phone,
            status=STATUS_PENDING,
        )
        self._commit_new(status)
        return status

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_request(self, request_id):
        review_request = db.session.get(ReviewRequest, request_id)
        if review_request is None:
            raise NotFoundError(f'Review request {request_id} not found')
        return review_request

    def get_status(self, status_id):
        status = db.session.get(ReviewRequestStatus, status_id)
        if status is None:
            raise NotFoundError(f'Review request status {status_id} not found')
        return status

    def get_request_by_token(self, token):
        review_request = ReviewRequest.query.filter_by(token=token).first() if token else None
        if review_request is None:
            raise NotFoundError('Unknown review link')
        return review_request

    def get_status_for_request(self, request_id):
        status = ReviewRequestStatus.query.filter_by(review_request_id=request_id).first()
        if status is None:
            raise NotFoundError(f'No follow-up status for review request {request_id}')
        return status

    def list_outstanding(self, company_id):
        """All statuses for a company that are neither completed nor unsubscribed"""
        try:
            return (ReviewRequestStatus.for_company(company_id)
                    .filter(ReviewRequestStatus.status.notin_(TERMINAL_STATUSES))
                    .order_by(ReviewRequestStatus.created_at.asc())
                    .all())
        except SQLAlchemyError as exc:
            raise StoreError(f'Failed to list outstanding requests for company {company_id}: {exc}') from exc

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def advance_stage(self, status_id, stage, now=None):
        """
        Mark ``stage`` as sent at ``now``

        The update only matches while the stage is unsent, the status is not
        terminal and the previous stage was sent no later than ``now``.

        Raises:
            NotFoundError: unknown status id
            ConflictError: the row did not match
        """
        if stage not in STAGE_COLUMNS:
            raise ValidationError(f'Unknown stage {stage!r}')

        now = as_naive_utc(now) or utcnow()
        model = ReviewRequestStatus
        flag, column = STAGE_COLUMNS[stage]

        conditions = [
            model.id == status_id,
            getattr(model, flag).is_(False),
            model.status.notin_(TERMINAL_STATUSES),
        ]
        prev = previous_stage(stage)
        if prev:
            prev_flag, prev_column = STAGE_COLUMNS[prev]
            conditions.append(getattr(model, prev_flag).is_(True))
            conditions.append(getattr(model, prev_column) <= now)

        values = {
            getattr(model, flag): True,
            getattr(model, column): now,
            model.status: case((model.status == STATUS_PENDING, STATUS_IN_PROGRESS), else_=model.status),
            model.updated_at: utcnow(),
        }

        try:
            updated = model.query.filter(*conditions).update(values, synchronize_session=False)
            if updated:
                if stage == STAGES[0]:
                    request_id = (db.session.query(model.review_request_id)
                                  .filter(model.id == status_id).scalar())
                    ReviewRequest.query.filter_by(id=request_id).update(
                        {'status': 'sent', 'sent_at': now, 'updated_at': utcnow()},
                        synchronize_session=False,
                    )
                db.session.commit()
            else:
                db.session.rollback()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(f'Failed to advance {stage} for status {status_id}: {exc}') from exc

        status = self.get_status(status_id)
        if not updated:
            if status.is_terminal:
                raise ConflictError(f'Status {status_id} is {status.status}; no further stages are sent')
            if status.stage_sent(stage):
                raise ConflictError(f'Stage {stage} already sent for status {status_id}')
            raise ConflictError(f'Stage {stage} is not yet reachable for status {status_id}')

        logger.info("Advanced status %s to stage %s", status_id, stage)
        return status

    def record_event(self, token, kind, now=None):
        """
        Record a click, submission or unsubscribe for the request behind
        ``token``. Repeating an event that was already recorded changes nothing.
        """
        if kind not in EVENTS:
            raise ValidationError(f'Unknown event {kind!r}')

        now = as_naive_utc(now) or utcnow()
        review_request = self.get_request_by_token(token)
        status = self.get_status_for_request(review_request.id)

        model = ReviewRequestStatus
        row = model.query.filter(model.id == status.id)
        not_terminal = model.status.notin_(TERMINAL_STATUSES)

        try:
            if kind == EVENT_CLICK:
                row.filter(model.link_clicked.is_(False)).update(
                    {model.link_clicked: True, model.link_clicked_at: now},
                    synchronize_session=False,
                )
            elif kind == EVENT_SUBMIT:
                recorded = row.filter(model.review_submitted.is_(False)).update(
                    {model.review_submitted: True, model.review_submitted_at: now},
                    synchronize_session=False,
                )
                if recorded:
                    row.filter(not_terminal).update(
                        {model.status: STATUS_COMPLETED, model.completed_at: now},
                        synchronize_session=False,
                    )
            else:
                recorded = row.filter(model.unsubscribed_at.is_(None)).update(
                    {model.unsubscribed_at: now},
                    synchronize_session=False,
                )
                if recorded:
                    row.filter(not_terminal).update(
                        {model.status: STATUS_UNSUBSCRIBED},
                        synchronize_session=False,
                    )
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(f'Failed to record {kind} for status {status.id}: {exc}') from exc

        logger.info("Recorded %s for review request %s", kind, review_request.id)
        return self.get_status(status.id)

    def mark_request_failed(self, request_id):
        """Flag a request whose initial send failed on every channel"""
        try:
            ReviewRequest.query.filter(
                ReviewRequest.id == request_id,
                ReviewRequest.status != 'sent',
            ).update({'status': 'failed', 'updated_at': utcnow()}, synchronize_session=False)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(f'Failed to mark review request {request_id} failed: {exc}') from exc

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def stats(self, company_id):
        """Review automation statistics for a company"""
        model = ReviewRequestStatus
        statuses = model.for_company(company_id)

        total_requests = ReviewRequest.for_company(company_id).count()
        sent_requests = ReviewRequest.for_company(company_id).filter(ReviewRequest.status == 'sent').count()
        initial_sent = statuses.filter(model.initial_request_sent.is_(True)).count()
        clicked = statuses.filter(model.link_clicked.is_(True)).count()
        submitted = statuses.filter(model.review_submitted.is_(True)).all()

        conversion_days = [
            (s.review_submitted_at - s.initial_request_sent_at).total_seconds() / 86400
            for s in submitted
            if s.initial_request_sent_at and s.review_submitted_at
        ]

        by_stage = {}
        for stage in STAGES:
            flag, _ = STAGE_COLUMNS[stage]
            by_stage[stage] = statuses.filter(getattr(model, flag).is_(True)).count()

        return {
            'total_requests': total_requests,
            'sent_requests': sent_requests,
            'completed_requests': len(submitted),
            'unsubscribed_requests': statuses.filter(model.status == STATUS_UNSUBSCRIBED).count(),
            'click_rate': round(clicked / initial_sent, 4) if initial_sent else 0.0,
            'conversion_rate': round(len(submitted) / initial_sent, 4) if initial_sent else 0.0,
            'avg_time_to_conversion': round(sum(conversion_days) / len(conversion_days), 2) if conversion_days else 0.0,
            'by_follow_up_step': by_stage,
        }

    def _commit_new(self, instance):
        try:
            db.session.add(instance)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(f'Failed to save {instance.__class__.__name__}: {exc}') from exc
