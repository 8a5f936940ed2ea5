"""Company, Technician and CheckIn models"""
from app import db
from .base import BaseModel, TenantMixin


class Company(BaseModel):
    """
    Company model - the tenant; each company owns its own review automation
    settings and review requests
    """
    __tablename__ = 'companies'

    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    contact_email = db.Column(db.String(255))
    contact_phone = db.Column(db.String(50))

    technicians = db.relationship('Technician', backref='company', lazy='dynamic', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Company {self.name}>'


class Technician(BaseModel, TenantMixin):
    """Field technician who performed a service visit"""
    __tablename__ = 'technicians'

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255))
    phone = db.Column(db.String(50))

    def __repr__(self):
        return f'<Technician {self.name}>'


class CheckIn(BaseModel, TenantMixin):
    """
    A completed service visit. Review requests are created from check-ins
    once the targeting filters in the tenant's settings allow it.
    """
    __tablename__ = 'check_ins'

    technician_id = db.Column(db.String(36), db.ForeignKey('technicians.id', ondelete='SET NULL'), nullable=True, index=True)
    job_type = db.Column(db.String(100), nullable=False)
    city = db.Column(db.String(100))

    customer_name = db.Column(db.String(255))
    customer_email = db.Column(db.String(255))
    customer_phone = db.Column(db.String(50))

    invoice_amount = db.Column(db.Numeric(10, 2))
    # None when the technician did not record how the visit went
    positive_experience = db.Column(db.Boolean, nullable=True)

    technician = db.relationship('Technician')

    def __repr__(self):
        return f'<CheckIn {self.job_type} for {self.customer_name}>'
