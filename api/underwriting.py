from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from schemas.offer import OfferRequest
from schemas.underwriting import AnalyzeRequest, DecisionRequest, OfferQuoteRequest
from services.decisions import issue_decision
from services.offers import calculate_offer
from services.underwriting import analyze_deal, quote_offer

router = APIRouter(prefix="/api/underwriting", tags=["underwriting"])


@router.post("/calculate", response_model=dict)
async def calculate(body: OfferRequest):
    """Pure offer arithmetic; touches no deal."""
    return calculate_offer(body).to_response()


@router.post("/analyze", response_model=dict)
async def analyze(body: AnalyzeRequest, db: AsyncSession = Depends(get_db)):
    return await analyze_deal(db, body.deal_id)


@router.post("/offer", response_model=dict)
async def offer(body: OfferQuoteRequest, db: AsyncSession = Depends(get_db)):
    return await quote_offer(db, body)


@router.post("/decision", response_model=dict)
async def decision(body: DecisionRequest, db: AsyncSession = Depends(get_db)):
    result = await issue_decision(db, body)
    return result.to_response()
