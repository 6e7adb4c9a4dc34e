from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

# ----- AI valuation (strict boundary schema) -----

class MarketTrends(CamelModel):
    direction: Literal["up", "down", "stable"]
    reasoning: str = Field(min_length=1)

class DistanceInfoOut(CamelModel):
    nearest_city: str
    distance_text: str
    distance_value: int | None = None
    duration_text: str
    duration_value: int | None = None

class ComparableOut(CamelModel):
    address: str
    acres: float | None = None
    price: float | None = None
    price_per_acre: float | None = None

class ValuationEstimate(CamelModel):
    estimated_value: int = Field(gt=0)
    confidence_score: float = Field(gt=0, le=1)
    key_features: list[str]
    risks: list[str]
    opportunities: list[str]
    market_trends: MarketTrends
    comparable_properties: list[ComparableOut] = Field(default_factory=list)
    distance_info: DistanceInfoOut | None = None

    @field_validator("estimated_value", mode="before")
    @classmethod
    def whole_dollars(cls, v: Any) -> Any:
        # Models like to answer 250000.0 or "250000"
        if isinstance(v, str):
            v = v.replace("$", "").replace(",", "").strip()
        if isinstance(v, (int, float, str)) and not isinstance(v, bool):
            try:
                return int(round(float(v)))
            except (ValueError, OverflowError):
                return v
        return v

# ----- Requests / responses -----

class AcresPricesRequest(CamelModel):
    city: str = Field(min_length=1)
    acres: float = Field(gt=0)
    zip_code: str = Field(min_length=1)

class AcresPricesResponse(BaseModel):
    prices: list[ComparableOut]

class AnalysisCreate(CamelModel):
    parcel_id: int
    analysis: dict
    credits_used: int = Field(ge=0)

class AnalysisOut(CamelModel):
    id: int
    parcel_id: int
    user_id: int
    analysis: dict
    credits_used: int
    created_at: str

class AnalyzeRequest(CamelModel):
    credits_used: int | None = Field(default=None, ge=0)

class ClusterSummaryOut(CamelModel):
    mean: float
    std_dev: float
    coefficient_of_variation: float
    min: float
    max: float
    count: int
    total_count: int
    outlier_count: int
    cluster_count: int
    cluster_sizes: list[int]
    current_price_per_acre: float | None = None
    selection_reason: str

class AnalyzeResponse(CamelModel):
    analysis_id: int
    analysis: ValuationEstimate
    summary: ClusterSummaryOut | None = None
    comparables: list[ComparableOut]
    corrected: bool = False

class PriceComparison(BaseModel):
    address: str = ""
    acres: float | None = None
    acre: float | None = None
    price: float | None = None

class PredictPriceRequest(CamelModel):
    address: str = Field(min_length=1)
    price_comparisons: list[PriceComparison] = Field(default_factory=list)
    acres: float | None = Field(default=None, gt=0)
    market_value: float | None = Field(default=None, gt=0)

class PredictPriceResponse(BaseModel):
    predicted_price: int
    confidence_score: float
    reasoning: str

class UserOut(CamelModel):
    id: int
    username: str
    email: str
    firebase_uid: str
    credits: int

class LoginRequest(CamelModel):
    email: str = Field(min_length=3)
    username: str | None = None

class ParcelAddress(CamelModel):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=2)
    zipcode: str = Field(min_length=1)

class ParcelCreate(CamelModel):
    address: ParcelAddress
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    acres: float = Field(gt=0)
    price: int | None = Field(default=None, ge=0)
    details: dict | None = None

class ParcelOut(CamelModel):
    id: int
    user_id: int | None = None
    address: dict
    latitude: float
    longitude: float
    acres: float
    price: int | None = None
    details: dict
    created_at: str

class MarketingRequest(CamelModel):
    target_audience: str = Field(min_length=1)
    parcel_id: int | None = None
    property_details: dict | None = None

class MarketingResponse(BaseModel):
    description: str

class ErrorResponse(BaseModel):
    message: str
    reason: str
