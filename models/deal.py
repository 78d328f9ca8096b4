from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, Numeric, String, Text
from sqlalchemy.orm import relationship

from database import Base, utcnow


class Deal(Base):
    __tablename__ = "deals"

    id = Column(String(64), primary_key=True, index=True)
    merchant_id = Column(String(64), ForeignKey("merchants.id"), nullable=False, index=True)
    broker_id = Column(String(64), ForeignKey("brokers.id"), nullable=True, index=True)
    underwriter_id = Column(String(64), nullable=True)
    source = Column(String(16), nullable=False, default="DIRECT")

    requested_amount = Column(Numeric(14, 2), nullable=False)
    # Offer terms: written together by decision issuance, cleared together on re-open
    approved_amount = Column(Numeric(14, 2), nullable=True)
    factor_rate = Column(Numeric(6, 4), nullable=True)
    term_days = Column(Integer, nullable=True)
    payback_amount = Column(Numeric(14, 2), nullable=True)
    daily_payment = Column(Numeric(14, 2), nullable=True)
    weekly_payment = Column(Numeric(14, 2), nullable=True)
    holdback_percentage = Column(Numeric(6, 1), nullable=True)
    position = Column(Integer, nullable=True)
    commission = Column(Numeric(14, 2), nullable=True)
    commission_rate = Column(Numeric(5, 4), nullable=True)

    paper_grade = Column(String(1), nullable=True)
    risk_score = Column(Integer, nullable=True)
    existing_positions = Column(Integer, nullable=False, default=0)
    stacking_detected = Column(Boolean, nullable=False, default=False)

    stage = Column(String(32), nullable=False, default="NEW_LEAD", index=True)
    stage_changed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    decision_date = Column(DateTime(timezone=True), nullable=True)
    decision_notes = Column(Text, nullable=True)
    decline_reasons = Column(JSON, nullable=True)
    funded_at = Column(DateTime(timezone=True), nullable=True)

    # Optimistic lock: every UPDATE is guarded by the version it read
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    merchant = relationship("Merchant", back_populates="deals")
    broker = relationship("Broker", back_populates="deals")
    stage_history = relationship(
        "DealStageHistory",
        back_populates="deal",
        cascade="all, delete-orphan",
        order_by="DealStageHistory.changed_at.desc()",
    )
    comments = relationship(
        "Comment",
        back_populates="deal",
        cascade="all, delete-orphan",
        order_by="Comment.created_at.desc()",
    )
    documents = relationship("Document", back_populates="deal", cascade="all, delete-orphan")
    bank_analysis = relationship("BankAnalysis", back_populates="deal", uselist=False, cascade="all, delete-orphan")


class DealStageHistory(Base):
    __tablename__ = "deal_stage_history"

    id = Column(String(64), primary_key=True, index=True)
    deal_id = Column(String(64), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True)
    # Null only for the intake entry
    from_stage = Column(String(32), nullable=True)
    to_stage = Column(String(32), nullable=False)
    changed_by = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)
    changed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    deal = relationship("Deal", back_populates="stage_history")


class Comment(Base):
    __tablename__ = "deal_comments"

    id = Column(String(64), primary_key=True, index=True)
    deal_id = Column(String(64), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True)
    author = Column(String(128), nullable=True)
    content = Column(Text, nullable=False)
    is_internal = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    deal = relationship("Deal", back_populates="comments")


class Document(Base):
    __tablename__ = "deal_documents"

    id = Column(String(64), primary_key=True, index=True)
    deal_id = Column(String(64), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(256), nullable=False)
    doc_type = Column(String(64), nullable=True)
    url = Column(String(1024), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    deal = relationship("Deal", back_populates="documents")


class BankAnalysis(Base):
    __tablename__ = "bank_analyses"

    id = Column(String(64), primary_key=True, index=True)
    deal_id = Column(String(64), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    avg_daily_balance = Column(Numeric(14, 2), nullable=False, default=0)
    min_balance = Column(Numeric(14, 2), nullable=False, default=0)
    max_balance = Column(Numeric(14, 2), nullable=False, default=0)
    total_deposits = Column(Numeric(14, 2), nullable=False, default=0)
    deposit_count = Column(Integer, nullable=False, default=0)
    avg_deposit = Column(Numeric(14, 2), nullable=False, default=0)
    deposit_days_count = Column(Integer, nullable=False, default=0)
    nsf_count = Column(Integer, nullable=False, default=0)
    overdraft_count = Column(Integer, nullable=False, default=0)
    months_analyzed = Column(Integer, nullable=False, default=3)
    revenue_trend = Column(String(16), nullable=False, default="STABLE")
    estimated_daily_load = Column(Numeric(14, 2), nullable=True)
    # [{name, amount, frequency, estimated_balance}, ...]
    detected_mca_payments = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    deal = relationship("Deal", back_populates="bank_analysis")
