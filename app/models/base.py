"""
Base model with common fields and methods
"""
from app import db
from datetime import datetime, timezone
import uuid


def generate_uuid():
    return str(uuid.uuid4())


def utcnow():
    """Naive UTC timestamp; all stored datetimes are naive UTC"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value):
    """Normalise an aware datetime to naive UTC, pass naive values through"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class BaseModel(db.Model):
    """Abstract base model with common fields"""
    __abstract__ = True

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self, exclude=None):
        """
        Convert model to dictionary

        Args:
            exclude (list): List of fields to exclude

        Returns:
            dict: Model as dictionary
        """
        exclude = exclude or []
        data = {}

        for column in self.__table__.columns:
            if column.name not in exclude:
                value = getattr(self, column.name)

                if isinstance(value, datetime):
                    value = value.isoformat()

                data[column.name] = value

        return data


class TenantMixin:
    """Mixin for multi-tenant models"""
    company_id = db.Column(db.String(36), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)

    @classmethod
    def for_company(cls, company_id):
        """
        Query records for specific company

        Args:
            company_id: id of the tenant

        Returns:
            Query: Filtered query for tenant
        """
        return cls.query.filter(cls.company_id == company_id)
