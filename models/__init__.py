from models.broker import Broker
from models.deal import BankAnalysis, Comment, Deal, DealStageHistory, Document
from models.merchant import Merchant, MerchantOwner, UccFiling

__all__ = [
    "BankAnalysis",
    "Broker",
    "Comment",
    "Deal",
    "DealStageHistory",
    "Document",
    "Merchant",
    "MerchantOwner",
    "UccFiling",
]
