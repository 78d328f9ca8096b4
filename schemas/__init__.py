from schemas.deal import (
    BankAnalysisUpsert,
    CommentCreate,
    DealCreate,
    DealUpdate,
    DocumentCreate,
    McaPaymentIn,
    StageChange,
)
from schemas.enums import (
    DealSource,
    DealStage,
    DecisionKind,
    IndustryRiskTier,
    PaperGrade,
    RevenueTrend,
    UccStatus,
)
from schemas.merchant import BrokerCreate, MerchantCreate, MerchantUpdate, OwnerCreate, UccFilingCreate
from schemas.offer import Offer, OfferRequest, OfferTier
from schemas.underwriting import (
    AnalyzeRequest,
    BankMetricsResultSchema,
    DecisionRequest,
    DecisionResult,
    OfferQuoteRequest,
    RiskScoreResultSchema,
    StackingResultSchema,
)

__all__ = [
    "AnalyzeRequest",
    "BankAnalysisUpsert",
    "BankMetricsResultSchema",
    "BrokerCreate",
    "CommentCreate",
    "DealCreate",
    "DealSource",
    "DealStage",
    "DealUpdate",
    "DecisionKind",
    "DecisionRequest",
    "DecisionResult",
    "DocumentCreate",
    "IndustryRiskTier",
    "McaPaymentIn",
    "MerchantCreate",
    "MerchantUpdate",
    "Offer",
    "OfferQuoteRequest",
    "OfferRequest",
    "OfferTier",
    "OwnerCreate",
    "PaperGrade",
    "RevenueTrend",
    "RiskScoreResultSchema",
    "StackingResultSchema",
    "StageChange",
    "UccFilingCreate",
]
