"""
Review follow-up reconciliation.

A single recurring job walks every active company's outstanding review
requests and advances each by at most one stage per pass. There are no
per-request timers: a stage that is not due, not inside the send window, or
that failed on every channel is simply looked at again next pass.

Only starts when ENABLE_SCHEDULER=true to prevent running on multiple instances.
"""
import logging
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from itertools import zip_longest

from app import db
from app.errors import ConflictError
from app.models import CheckIn, Company, Technician
from app.models.base import as_naive_utc, utcnow
from app.models.review_request import STAGE_INITIAL, STAGE_FIRST, STAGE_SECOND, STAGE_FINAL
from app.services.timing_gate import is_eligible_now, to_local_time

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)

OUTCOME_SENT = 'sent'
OUTCOME_IDLE = 'idle'
OUTCOME_DEFERRED = 'deferred'
OUTCOME_FAILED = 'failed'
OUTCOME_CONFLICT = 'conflict'
OUTCOME_ERROR = 'error'
OUTCOME_STOPPED = 'stopped'


def days_between(start, end):
    """Whole days between two datetimes: floor(|end - start| / 24h)"""
    return abs(as_naive_utc(end) - as_naive_utc(start)) // ONE_DAY


def select_stage(status, settings, now):
    """The one stage to attempt for ``status`` this pass, or None"""
    if status.is_terminal:
        return None

    if not status.initial_request_sent:
        return STAGE_INITIAL

    if (settings.enable_first_follow_up
            and not status.first_follow_up_sent
            and status.initial_request_sent_at is not None
            and days_between(status.initial_request_sent_at, now) >= settings.first_follow_up_delay):
        return STAGE_FIRST

    if (settings.enable_second_follow_up
            and not status.second_follow_up_sent
            and status.first_follow_up_sent_at is not None
            and days_between(status.first_follow_up_sent_at, now) >= settings.second_follow_up_delay):
        return STAGE_SECOND

    if (settings.enable_final_follow_up
            and not status.final_follow_up_sent
            and status.second_follow_up_sent_at is not None
            and days_between(status.second_follow_up_sent_at, now) >= settings.final_follow_up_delay):
        return STAGE_FINAL

    return None


def interleave(groups):
    """Round-robin items across groups so no single group runs first in full"""
    return [item for batch in zip_longest(*groups) for item in batch if item is not None]


class ReconciliationScheduler:
    """Periodic driver for the review request follow-up lifecycle"""

    def __init__(self, app, tracker, settings_provider, dispatch_engine, max_workers=4,
                 interval_hours=1, warmup_seconds=30, default_timezone='UTC', holiday_calendar=None):
        self.app = app
        self.tracker = tracker
        self.settings_provider = settings_provider
        self.dispatch_engine = dispatch_engine
        self.max_workers = max_workers
        self.interval_hours = interval_hours
        self.warmup_seconds = warmup_seconds
        self.default_timezone = default_timezone
        self.holiday_calendar = holiday_calendar

        self._pass_lock = threading.Lock()
        self._stopping = threading.Event()
        self._scheduler = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self):
        """Start the hourly job plus one warm-up run shortly after start"""
        from apscheduler.schedulers.background import BackgroundScheduler

        scheduler = BackgroundScheduler(daemon=True)

        scheduler.add_job(
            self.run_pass,
            "interval",
            hours=self.interval_hours,
            id="reconcile_review_requests",
            name="Advance review request follow-ups",
            max_instances=1,
            coalesce=True,
        )

        scheduler.add_job(
            self.run_pass,
            "date",
            run_date=datetime.now(timezone.utc) + timedelta(seconds=self.warmup_seconds),
            id="reconcile_review_requests_warmup",
            name="Warm-up review request reconciliation",
        )

        scheduler.start()
        self._scheduler = scheduler
        logger.info("Review reconciliation scheduler started (every %dh, warm-up in %ds)",
                    self.interval_hours, self.warmup_seconds)
        return scheduler

    def shutdown(self, wait=True):
        """Stop starting new work; in-flight sends are allowed to finish"""
        self._stopping.set()
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
        self.dispatch_engine.shutdown()
        logger.info("Review reconciliation scheduler stopped")

    # ------------------------------------------------------------------
    # Pass
    # ------------------------------------------------------------------
    def run_pass(self, now=None):
        """
        Run one reconciliation pass over every active company

        Args:
            now (datetime): pass time, UTC; defaults to the current time

        Returns:
            Counter: outcomes keyed by OUTCOME_* plus 'companies' and
            'company_errors', or None when a pass was already running
        """
        if not self._pass_lock.acquire(blocking=False):
            logger.warning("Reconciliation pass already running; skipping this run")
            return None

        try:
            now = as_naive_utc(now) or utcnow()
            summary = Counter()

            with self.app.app_context():
                company_ids = [company.id for company in
                               Company.query.filter_by(is_active=True).order_by(Company.created_at).all()]
            summary['companies'] = len(company_ids)

            loaded = self._map(self._load_company, company_ids, now)
            groups = []
            for result in loaded:
                if result is None:
                    summary['company_errors'] += 1
                elif result:
                    groups.append(result)

            for outcome in self._map(self._process_status, interleave(groups), now):
                summary[outcome] += 1

            logger.info("Reconciliation pass: %d companies, %d sent, %d deferred, %d failed, %d errors",
                        summary['companies'], summary[OUTCOME_SENT], summary[OUTCOME_DEFERRED],
                        summary[OUTCOME_FAILED], summary[OUTCOME_ERROR] + summary['company_errors'])
            return summary
        finally:
            self._pass_lock.release()

    def _map(self, fn, items, now):
        """Apply ``fn`` to every item on a bounded pool (inline for one worker)"""
        if not items:
            return []
        if self.max_workers <= 1:
            return [fn(item, now) for item in items]
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='review-reconcile') as pool:
            return list(pool.map(lambda item: fn(item, now), items))

    def _load_company(self, company_id, now):
        """Outstanding (company_id, status_id) pairs; [] to skip, None on error"""
        if self._stopping.is_set():
            return []
        with self.app.app_context():
            try:
                settings = self.settings_provider.get(company_id)
                if not settings.is_active:
                    return []
                return [(company_id, status.id) for status in self.tracker.list_outstanding(company_id)]
            except Exception:
                logger.exception("Failed to load review requests for company %s", company_id)
                return None

    def _process_status(self, unit, now):
        company_id, status_id = unit
        if self._stopping.is_set():
            return OUTCOME_STOPPED

        with self.app.app_context():
            try:
                return self._advance(company_id, status_id, now)
            except ConflictError as exc:
                logger.info("Skipping status %s: %s", status_id, exc)
                return OUTCOME_CONFLICT
            except Exception:
                db.session.rollback()
                logger.exception("Failed to process review request status %s", status_id)
                return OUTCOME_ERROR

    def _advance(self, company_id, status_id, now):
        status = self.tracker.get_status(status_id)
        settings = self.settings_provider.get(company_id)

        stage = select_stage(status, settings, now)
        if stage is None:
            return OUTCOME_IDLE

        local_now = to_local_time(now, settings.timezone, self.default_timezone)
        if not is_eligible_now(settings, local_now, self.holiday_calendar):
            return OUTCOME_DEFERRED

        review_request = self.tracker.get_request(status.review_request_id)
        company = db.session.get(Company, company_id)
        technician = db.session.get(Technician, status.technician_id) if status.technician_id else None
        check_in = db.session.get(CheckIn, status.check_in_id) if status.check_in_id else None

        result = self.dispatch_engine.send_stage(
            stage, review_request, status, settings, technician, company,
            check_in=check_in, now=now,
        )
        return OUTCOME_SENT if result.success else OUTCOME_FAILED
