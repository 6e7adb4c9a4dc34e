import asyncio
import dataclasses
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional

from ..core.config import settings
from ..core.metrics import AI_LATENCY, ANALYSIS_RUNS, COLLABORATOR_DEGRADED
from ..core.utils import format_currency
from ..data.base import (
    Analysis,
    ComparableObservation,
    DistanceClient,
    DistanceInfo,
    PropertyStore,
    SubjectProperty,
    User,
)
from ..models.base import ValuationContext, ValuationModel
from ..models.mock_model import MockModel
from ..models.openai_model import OpenAIModel
from ..schemas import ValuationEstimate
from .comparable_fetcher import ComparableFetcher
from .errors import AnalysisFailed, InsufficientCredits, InvalidEstimateFormat, NotFound
from .price_normalizer import ClusterSummary, normalize
from .valuation_validator import FALLBACK_PRICE_PER_ACRE, estimate_to_json, parse_estimate, validate

logger = logging.getLogger(__name__)

# Acreage assumed when a parcel has none on record
DEFAULT_ACRES = 10


class Stage(str, enum.Enum):
    START = "start"
    DISTANCE_LOOKUP = "distance_lookup"
    FETCH_COMPARABLES = "fetch_comparables"
    NORMALIZE = "normalize"
    AI_VALUATION = "ai_valuation"
    VALIDATE = "validate"
    PERSIST = "persist"
    DONE = "done"
    FAILED = "failed"


@dataclass
class AnalysisResult:
    estimate: ValuationEstimate
    record: Analysis
    summary: Optional[ClusterSummary]
    comparables: List[ComparableObservation]
    distance: Optional[DistanceInfo]
    corrected: bool
    stages: List[Stage] = field(default_factory=list)


@dataclass
class PricePrediction:
    predicted_price: int
    confidence_score: float
    reasoning: str
    summary: Optional[ClusterSummary] = None


def valuation_model() -> ValuationModel:
    # Pick model provider based on env
    if settings.MODEL_PROVIDER == "openai":
        return OpenAIModel()
    return MockModel()


class AnalysisOrchestrator:
    """
    Runs one property analysis:
      distance lookup ∥ comparable fetch → normalize → AI valuation → validate → persist
    Distance and comparable failures degrade to "no data"; anything after
    normalization is fatal and surfaces as AnalysisFailed.
    """
    def __init__(
        self,
        store: PropertyStore,
        distance: DistanceClient,
        model: ValuationModel,
        fetcher: Optional[ComparableFetcher] = None,
        *,
        ai_timeout: float = settings.AI_TIMEOUT_SECONDS,
        credit_cost: int = settings.ANALYSIS_CREDIT_COST,
    ):
        self.store = store
        self.distance = distance
        self.model = model
        self.fetcher = fetcher or ComparableFetcher(store)
        self.ai_timeout = ai_timeout
        self.credit_cost = credit_cost

    async def subject_for_parcel(self, parcel_id: int) -> SubjectProperty:
        parcel = await self.store.get_parcel(parcel_id)
        if parcel is None:
            raise NotFound("Parcel not found")
        subject = parcel.to_subject()
        if not subject.acres or subject.acres <= 0:
            subject = dataclasses.replace(subject, acres=DEFAULT_ACRES)
        return subject

    async def _lookup_distance(self, subject: SubjectProperty) -> Optional[DistanceInfo]:
        if subject.latitude is None or subject.longitude is None:
            return None
        return await self.distance.distance_to_city(subject.latitude, subject.longitude)

    async def _fetch(self, subject: SubjectProperty, exclude_id: Optional[int]) -> List[ComparableObservation]:
        return await self.fetcher.fetch_comparables(
            subject.city or "", subject.zip_code or "", subject.acres, exclude_id=exclude_id
        )

    async def gather_context(self, subject: SubjectProperty, stages: List[Stage],
                             exclude_id: Optional[int] = None) -> ValuationContext:
        """
        Distance and comps are independent; both are awaited before normalizing.
        ``exclude_id`` keeps the subject parcel out of its own comparables.
        """
        stages += [Stage.DISTANCE_LOOKUP, Stage.FETCH_COMPARABLES]
        distance, comps = await asyncio.gather(
            self._lookup_distance(subject), self._fetch(subject, exclude_id), return_exceptions=True
        )
        if isinstance(distance, BaseException):
            logger.warning("Distance lookup failed, continuing without it: %r", distance,
                           extra={"stage": Stage.DISTANCE_LOOKUP.value})
            COLLABORATOR_DEGRADED.labels(collaborator="distance").inc()
            distance = None
        if isinstance(comps, BaseException):
            logger.warning("Comparable fetch failed, continuing without comps: %r", comps,
                           extra={"stage": Stage.FETCH_COMPARABLES.value})
            COLLABORATOR_DEGRADED.labels(collaborator="comparables").inc()
            comps = []

        stages.append(Stage.NORMALIZE)
        summary = normalize(comps, subject)
        if summary is None:
            logger.info("No usable comparables for %s", subject.address)
        return ValuationContext(subject=subject, summary=summary, comparables=comps, distance=distance)

    async def _value(self, context: ValuationContext) -> dict:
        start = time.perf_counter()
        try:
            return await asyncio.wait_for(self.model.analyze_property(context), timeout=self.ai_timeout)
        except asyncio.TimeoutError as exc:
            raise AnalysisFailed(Stage.AI_VALUATION.value, "ai_timeout") from exc
        except Exception as exc:
            raise AnalysisFailed(Stage.AI_VALUATION.value, "ai_unavailable") from exc
        finally:
            AI_LATENCY.observe(time.perf_counter() - start)

    def _fail(self, exc: AnalysisFailed, **extra: Any) -> AnalysisFailed:
        ANALYSIS_RUNS.labels(outcome=Stage.FAILED.value, stage=exc.stage).inc()
        logger.error("Analysis failed at %s: %s", exc.stage, exc.reason,
                     exc_info=exc.__cause__ is not None,
                     extra={"stage": exc.stage, "reason": exc.reason, **extra})
        return exc

    async def run(self, user: User, parcel_id: int, credits_used: Optional[int] = None,
                  subject: Optional[SubjectProperty] = None) -> AnalysisResult:
        credits_used = self.credit_cost if credits_used is None else credits_used
        stages: List[Stage] = [Stage.START]
        log_extra = {"parcel_id": parcel_id, "user_id": user.id}

        if subject is None:
            subject = await self.subject_for_parcel(parcel_id)
        # Fail fast before the paid AI call; persistence re-checks atomically
        if user.credits < credits_used:
            raise self._fail(AnalysisFailed(Stage.START.value, InsufficientCredits.reason,
                                            status_code=InsufficientCredits.status_code,
                                            message=InsufficientCredits.__doc__), **log_extra)

        context = await self.gather_context(subject, stages, exclude_id=parcel_id)

        stages.append(Stage.AI_VALUATION)
        try:
            raw = await self._value(context)
        except AnalysisFailed as exc:
            raise self._fail(exc, **log_extra)

        stages.append(Stage.VALIDATE)
        try:
            parsed = parse_estimate(raw)
            estimate = validate(parsed, subject.acres)
        except InvalidEstimateFormat as exc:
            raise self._fail(AnalysisFailed(Stage.VALIDATE.value, exc.reason), **log_extra) from exc
        corrected = estimate is not parsed
        payload = estimate_to_json(estimate)
        payload["comparableProperties"] = [c.to_dict() for c in context.comparables if c.is_valid]
        payload["distanceInfo"] = context.distance.to_dict() if context.distance else None
        estimate = ValuationEstimate.model_validate(payload)

        stages.append(Stage.PERSIST)
        try:
            record = await self.store.record_analysis(
                parcel_id=parcel_id, user_id=user.id,
                analysis=estimate_to_json(estimate), credits_used=credits_used,
            )
        except InsufficientCredits as exc:
            raise self._fail(AnalysisFailed(Stage.PERSIST.value, exc.reason, status_code=exc.status_code,
                                            message=exc.message), **log_extra) from exc
        except Exception as exc:
            raise self._fail(AnalysisFailed(Stage.PERSIST.value, "storage_error", status_code=500),
                             **log_extra) from exc

        stages.append(Stage.DONE)
        ANALYSIS_RUNS.labels(outcome=Stage.DONE.value, stage=Stage.PERSIST.value).inc()
        logger.info("Analysis %s stored: %s", record.id, format_currency(estimate.estimated_value),
                    extra=log_extra)
        return AnalysisResult(
            estimate=estimate, record=record, summary=context.summary, comparables=context.comparables,
            distance=context.distance, corrected=corrected, stages=stages,
        )

    def predict_price(self, address: str, comparisons: Iterable[Mapping[str, Any]],
                      acres: Optional[float] = None, market_value: Optional[float] = None) -> PricePrediction:
        """
        Comparable-only price: cluster mean × acreage, passed through the
        same sanity band as AI estimates.
        """
        acres = acres if acres and acres > 0 else DEFAULT_ACRES
        subject = SubjectProperty(address=address, acres=acres, market_value=market_value)
        comps = [ComparableObservation.from_mapping(c) for c in comparisons]
        summary = normalize(comps, subject)

        if summary is None:
            per_acre = FALLBACK_PRICE_PER_ACRE
            confidence = 0.3
            reasoning = "No usable comparable sales; priced at the typical market rate per acre."
        else:
            per_acre = summary.mean
            outlier_share = summary.outlier_count / summary.total_count
            confidence = 0.9 - min(0.4, summary.coefficient_of_variation) - 0.2 * outlier_share
            if summary.count < 3:
                confidence -= 0.1
            reasoning = (
                f"{summary.count} of {summary.total_count} comparable(s) average "
                f"{format_currency(summary.mean)}/acre (range {format_currency(summary.min)}-"
                f"{format_currency(summary.max)}); group chosen as {summary.selection_reason}, "
                f"{summary.outlier_count} outlier(s) excluded."
            )
        confidence = round(max(0.1, min(0.95, confidence)), 2)

        # Cluster-mean pricing has no trend narrative of its own
        raw = {
            "estimatedValue": int(round(per_acre * acres)),
            "confidenceScore": confidence,
            "keyFeatures": [], "risks": [], "opportunities": [],
            "marketTrends": {"direction": "stable", "reasoning": reasoning},
        }
        estimate = validate(raw, acres)
        if estimate.estimated_value != raw["estimatedValue"]:
            reasoning += f" Adjusted to {format_currency(FALLBACK_PRICE_PER_ACRE)}/acre market rate."
        return PricePrediction(
            predicted_price=estimate.estimated_value,
            confidence_score=estimate.confidence_score,
            reasoning=reasoning,
            summary=summary,
        )
