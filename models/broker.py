from sqlalchemy import Column, DateTime, Numeric, String
from sqlalchemy.orm import relationship

from database import Base, utcnow


class Broker(Base):
    __tablename__ = "brokers"

    id = Column(String(64), primary_key=True, index=True)
    company_name = Column(String(256), nullable=False)
    contact_name = Column(String(256), nullable=True)
    email = Column(String(256), nullable=True)
    # Fraction of the approved amount, e.g. 0.10
    commission_rate = Column(Numeric(5, 4), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    deals = relationship("Deal", back_populates="broker")
