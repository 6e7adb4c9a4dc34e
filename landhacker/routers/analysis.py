from fastapi import APIRouter, Depends, HTTPException, Request
from ..schemas import (
    AcresPricesRequest,
    AcresPricesResponse,
    AnalysisCreate,
    AnalysisOut,
    AnalyzeRequest,
    AnalyzeResponse,
    ErrorResponse,
    PredictPriceRequest,
    PredictPriceResponse,
)
from ..data.base import Analysis, User
from ..services.analysis_service import DEFAULT_ACRES, AnalysisOrchestrator
from ..services.comparable_fetcher import ComparableFetcher
from ..services.valuation_validator import estimate_to_json, parse_estimate, validate
from ..core.security import require_uid, require_user

router = APIRouter()

def orchestrator_dep(request: Request) -> AnalysisOrchestrator:
    # Collaborators live on app.state so tests can inject their own
    state = request.app.state
    return AnalysisOrchestrator(state.store, state.distance, state.model)

def fetcher_dep(request: Request) -> ComparableFetcher:
    return ComparableFetcher(request.app.state.store)

def analysis_out(record: Analysis) -> dict:
    return {
        "id": record.id,
        "parcelId": record.parcel_id,
        "userId": record.user_id,
        "analysis": record.analysis,
        "creditsUsed": record.credits_used,
        "createdAt": record.created_at.isoformat(),
    }

@router.post("/acres-prices", response_model=AcresPricesResponse)
async def post_acres_prices(
    body: AcresPricesRequest,
    _uid: str = Depends(require_uid),
    fetcher: ComparableFetcher = Depends(fetcher_dep),
):
    comps = await fetcher.fetch_comparables(body.city, body.zip_code, body.acres)
    return {"prices": [c.to_dict() for c in comps]}

@router.post("/analyses", response_model=AnalysisOut, responses={400: {"model": ErrorResponse}})
async def post_analysis(
    body: AnalysisCreate,
    request: Request,
    user: User = Depends(require_user),
):
    estimate = parse_estimate(body.analysis)  # 400 on a malformed analysis
    store = request.app.state.store
    parcel = await store.get_parcel(body.parcel_id)
    if parcel is None:
        raise HTTPException(status_code=404, detail="Parcel not found")
    # Client-supplied estimates get the same price-per-acre band as AI ones
    estimate = validate(estimate, parcel.effective_acres if parcel.effective_acres > 0 else DEFAULT_ACRES)
    # Raises InsufficientCredits; credit deduction and insert are one unit
    record = await store.record_analysis(
        parcel_id=body.parcel_id, user_id=user.id,
        analysis=estimate_to_json(estimate), credits_used=body.credits_used,
    )
    return analysis_out(record)

@router.get("/analyses/{parcel_id}", response_model=list[AnalysisOut])
async def get_analyses(parcel_id: int, request: Request, _uid: str = Depends(require_uid)):
    records = await request.app.state.store.get_analyses_by_parcel(parcel_id)
    return [analysis_out(r) for r in records]

@router.post(
    "/parcels/{parcel_id}/analyze",
    response_model=AnalyzeResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def post_analyze(
    parcel_id: int,
    body: AnalyzeRequest | None = None,
    user: User = Depends(require_user),
    svc: AnalysisOrchestrator = Depends(orchestrator_dep),
):
    result = await svc.run(user, parcel_id, credits_used=body.credits_used if body else None)
    return {
        "analysisId": result.record.id,
        "analysis": estimate_to_json(result.estimate),
        "summary": result.summary.to_dict() if result.summary else None,
        "comparables": [c.to_dict() for c in result.comparables],
        "corrected": result.corrected,
    }

@router.post("/scrape/predict-price", response_model=PredictPriceResponse)
async def post_predict_price(
    body: PredictPriceRequest,
    _uid: str = Depends(require_uid),
    svc: AnalysisOrchestrator = Depends(orchestrator_dep),
):
    prediction = svc.predict_price(
        body.address,
        [c.model_dump() for c in body.price_comparisons],
        acres=body.acres,
        market_value=body.market_value,
    )
    return {
        "predicted_price": prediction.predicted_price,
        "confidence_score": prediction.confidence_score,
        "reasoning": prediction.reasoning,
    }
