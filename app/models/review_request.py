"""ReviewRequest and ReviewRequestStatus models"""
from app import db
from .base import BaseModel, TenantMixin


# Stages in send order
STAGE_INITIAL = 'initial'
STAGE_FIRST = 'first'
STAGE_SECOND = 'second'
STAGE_FINAL = 'final'
STAGES = (STAGE_INITIAL, STAGE_FIRST, STAGE_SECOND, STAGE_FINAL)

# stage -> (sent flag column, sent timestamp column)
STAGE_COLUMNS = {
    STAGE_INITIAL: ('initial_request_sent', 'initial_request_sent_at'),
    STAGE_FIRST: ('first_follow_up_sent', 'first_follow_up_sent_at'),
    STAGE_SECOND: ('second_follow_up_sent', 'second_follow_up_sent_at'),
    STAGE_FINAL: ('final_follow_up_sent', 'final_follow_up_sent_at'),
}

STATUS_PENDING = 'pending'
STATUS_IN_PROGRESS = 'in_progress'
STATUS_COMPLETED = 'completed'
STATUS_UNSUBSCRIBED = 'unsubscribed'
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_UNSUBSCRIBED)


def previous_stage(stage):
    """Stage that must have been sent before ``stage``, or None for initial"""
    index = STAGES.index(stage)
    return STAGES[index - 1] if index > 0 else None


class ReviewRequest(BaseModel, TenantMixin):
    """
    One solicitation attempt for one service visit. The token correlates the
    public review link with this row and is never reassigned.
    """
    __tablename__ = 'review_requests'

    customer_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255))
    phone = db.Column(db.String(50))
    method = db.Column(db.String(10), nullable=False, default='email')  # email, sms
    job_type = db.Column(db.String(100))
    custom_message = db.Column(db.Text)
    token = db.Column(db.String(64), unique=True, nullable=True, index=True)
    status = db.Column(db.String(20), nullable=False, default='pending')  # pending, sent, failed
    sent_at = db.Column(db.DateTime)
    technician_id = db.Column(db.String(36), db.ForeignKey('technicians.id', ondelete='SET NULL'), nullable=True, index=True)

    request_status = db.relationship('ReviewRequestStatus', back_populates='review_request', uselist=False,
                                     cascade='all, delete-orphan')

    __table_args__ = (
        db.CheckConstraint("method IN ('email', 'sms')", name='ck_review_request_method'),
        db.CheckConstraint("status IN ('pending', 'sent', 'failed')", name='ck_review_request_status'),
    )

    def __repr__(self):
        return f'<ReviewRequest {self.id} {self.status}>'

    def to_dict(self, include_token=False):
        data = super().to_dict(exclude=[] if include_token else ['token'])
        return data


class ReviewRequestStatus(BaseModel, TenantMixin):
    """
    Follow-up state machine record, 1:1 with a ReviewRequest.

    Only RequestTracker.advance_stage and RequestTracker.record_event write
    the stage and event columns.
    """
    __tablename__ = 'review_request_statuses'

    review_request_id = db.Column(db.String(36), db.ForeignKey('review_requests.id', ondelete='CASCADE'),
                                  nullable=False, unique=True)
    check_in_id = db.Column(db.String(36), db.ForeignKey('check_ins.id', ondelete='SET NULL'), nullable=True)
    technician_id = db.Column(db.String(36), db.ForeignKey('technicians.id', ondelete='SET NULL'), nullable=True)

    # Contact snapshot taken when the request was created
    customer_id = db.Column(db.String(255), nullable=False)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_email = db.Column(db.String(255))
    customer_phone = db.Column(db.String(50))

    # Request tracking
    initial_request_sent = db.Column(db.Boolean, nullable=False, default=False)
    initial_request_sent_at = db.Column(db.DateTime)
    first_follow_up_sent = db.Column(db.Boolean, nullable=False, default=False)
    first_follow_up_sent_at = db.Column(db.DateTime)
    second_follow_up_sent = db.Column(db.Boolean, nullable=False, default=False)
    second_follow_up_sent_at = db.Column(db.DateTime)
    final_follow_up_sent = db.Column(db.Boolean, nullable=False, default=False)
    final_follow_up_sent_at = db.Column(db.DateTime)

    # Response tracking
    link_clicked = db.Column(db.Boolean, nullable=False, default=False)
    link_clicked_at = db.Column(db.DateTime)
    review_submitted = db.Column(db.Boolean, nullable=False, default=False)
    review_submitted_at = db.Column(db.DateTime)

    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    unsubscribed_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)

    review_request = db.relationship('ReviewRequest', back_populates='request_status')

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed', 'unsubscribed')",
            name='ck_review_request_status_status',
        ),
    )

    def __repr__(self):
        return f'<ReviewRequestStatus {self.id} {self.status}>'

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    def stage_sent(self, stage):
        flag, _ = STAGE_COLUMNS[stage]
        return bool(getattr(self, flag))

    def stage_sent_at(self, stage):
        _, column = STAGE_COLUMNS[stage]
        return getattr(self, column)
