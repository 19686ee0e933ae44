"""ValidityRule SQLAlchemy model"""

from sqlalchemy import Column, String, Integer, CheckConstraint

from .base import Base, UTCDateTime, utcnow


class ValidityRuleModel(Base):
    """Validity window (days) for one document category.

    Categories with no row never expire.
    """
    __tablename__ = "validity_rule"
    __table_args__ = (
        CheckConstraint("validity_days >= 1", name="ck_validity_rule_validity_days"),
    )

    category = Column(String(64), primary_key=True)
    validity_days = Column(Integer, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)
