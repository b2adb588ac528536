"""
Policy models: policy years, grade entitlement bands, leave-type rules
"""
from sqlalchemy import Column, Integer, String, Date, DateTime, Boolean, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from leaveflow.db.base import Base
from leaveflow.services.policy_catalog import PayCategory


class PolicySetting(Base):
    __tablename__ = "policy_years"

    id = Column(Integer, primary_key=True, index=True)
    year = Column(Integer, nullable=False, unique=True)  # e.g., 2026

    carry_forward_limit = Column(Numeric(5, 2), nullable=False, default=5)
    carry_forward_expiry_date = Column(Date, nullable=False)  # carry-forward usable up to and including this date
    escalation_days = Column(Integer, nullable=False, default=7)  # SLA window for pending approvals
    annual_entitlement_fallback = Column(Numeric(5, 2), nullable=True)  # when no grade band matches

    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    entitlement_bands = relationship(
        "EntitlementBand",
        back_populates="policy",
        cascade="all, delete-orphan",
        order_by="EntitlementBand.grade_min",
    )

    __table_args__ = (
        CheckConstraint("escalation_days > 0", name="check_escalation_days_positive"),
    )


class EntitlementBand(Base):
    __tablename__ = "entitlement_rules"

    id = Column(Integer, primary_key=True, index=True)
    policy_year_id = Column(Integer, ForeignKey("policy_years.id", ondelete="CASCADE"), nullable=False, index=True)
    grade_min = Column(Integer, nullable=False)
    grade_max = Column(Integer, nullable=False)
    annual_days = Column(Numeric(5, 2), nullable=False)

    policy = relationship("PolicySetting", back_populates="entitlement_bands")

    __table_args__ = (
        CheckConstraint("grade_min <= grade_max", name="check_grade_min_le_grade_max"),
    )


class LeaveTypeConfig(Base):
    __tablename__ = "leave_type_rules"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(40), nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    fixed_duration_days = Column(Numeric(5, 2), nullable=True)  # e.g. BIRTHDAY=1, COMPASSIONATE=3
    fixed_duration_strict = Column(Boolean, nullable=False, default=False)
    pay_category = Column(String(10), nullable=False, default=PayCategory.FULL.value)
    requires_reason = Column(Boolean, nullable=False, default=False)
    requires_attachment = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
