from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from schemas.enums import IndustryRiskTier, UccStatus

CAMEL = {"populate_by_name": True, "alias_generator": to_camel}


class OwnerCreate(BaseModel):
    first_name: str
    last_name: str
    fico_score: Optional[int] = Field(None, ge=300, le=850)
    ownership: Decimal = Field(Decimal("100"), gt=0, le=100)
    is_primary: bool = False

    model_config = CAMEL


class UccFilingCreate(BaseModel):
    filing_number: Optional[str] = None
    filing_type: Optional[str] = None
    filing_state: Optional[str] = Field(None, min_length=2, max_length=2)
    status: UccStatus = UccStatus.FILED
    filed_at: Optional[datetime] = None

    model_config = CAMEL


class MerchantCreate(BaseModel):
    legal_name: str
    dba_name: Optional[str] = None
    industry: Optional[str] = None
    industry_risk_tier: IndustryRiskTier = IndustryRiskTier.B
    state: Optional[str] = Field(None, min_length=2, max_length=2)
    monthly_revenue: Optional[Decimal] = Field(None, gt=0)
    time_in_business: Optional[int] = Field(None, ge=0, description="Months")
    owners: list[OwnerCreate] = Field(default_factory=list)

    model_config = CAMEL


class MerchantUpdate(BaseModel):
    legal_name: Optional[str] = None
    dba_name: Optional[str] = None
    industry: Optional[str] = None
    industry_risk_tier: Optional[IndustryRiskTier] = None
    state: Optional[str] = Field(None, min_length=2, max_length=2)
    monthly_revenue: Optional[Decimal] = Field(None, gt=0)
    time_in_business: Optional[int] = Field(None, ge=0)

    model_config = CAMEL


class BrokerCreate(BaseModel):
    company_name: str
    contact_name: Optional[str] = None
    email: Optional[str] = None
    commission_rate: Optional[Decimal] = Field(None, ge=0, le=1)

    model_config = CAMEL
