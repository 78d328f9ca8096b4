from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from database import Base, utcnow


class Merchant(Base):
    __tablename__ = "merchants"

    id = Column(String(64), primary_key=True, index=True)
    legal_name = Column(String(256), nullable=False, index=True)
    dba_name = Column(String(256), nullable=True)
    industry = Column(String(128), nullable=True)
    industry_risk_tier = Column(String(1), nullable=False, default="B")
    state = Column(String(2), nullable=True)
    monthly_revenue = Column(Numeric(14, 2), nullable=True)
    # Months
    time_in_business = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    owners = relationship("MerchantOwner", back_populates="merchant", cascade="all, delete-orphan")
    ucc_filings = relationship("UccFiling", back_populates="merchant", cascade="all, delete-orphan")
    deals = relationship("Deal", back_populates="merchant")


class MerchantOwner(Base):
    __tablename__ = "merchant_owners"

    id = Column(String(64), primary_key=True, index=True)
    merchant_id = Column(String(64), ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True)
    first_name = Column(String(128), nullable=False)
    last_name = Column(String(128), nullable=False)
    fico_score = Column(Integer, nullable=True)
    ownership = Column(Numeric(5, 2), nullable=False, default=100)
    is_primary = Column(Boolean, nullable=False, default=False)

    merchant = relationship("Merchant", back_populates="owners")


class UccFiling(Base):
    __tablename__ = "ucc_filings"

    id = Column(String(64), primary_key=True, index=True)
    merchant_id = Column(String(64), ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True)
    filing_number = Column(String(64), nullable=True)
    filing_type = Column(String(32), nullable=True)
    filing_state = Column(String(2), nullable=True)
    status = Column(String(16), nullable=False, default="FILED")
    filed_at = Column(DateTime(timezone=True), nullable=True)

    merchant = relationship("Merchant", back_populates="ucc_filings")
