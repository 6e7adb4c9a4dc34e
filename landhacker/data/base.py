from typing import Any, Mapping, Protocol, List, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ..core.utils import format_address

# ----- Data shapes (thin & explicit) -----

def _positive(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None

@dataclass(frozen=True)
class ComparableObservation:
    address: str
    acres: Optional[float]
    price: Optional[float]

    @property
    def is_valid(self) -> bool:
        return _positive(self.acres) is not None and _positive(self.price) is not None

    @property
    def price_per_acre(self) -> Optional[float]:
        if not self.is_valid:
            return None
        return float(self.price) / float(self.acres)

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "ComparableObservation":
        # Storage rows say "acre", API payloads say "acres"
        acres = row.get("acres")
        if acres is None:
            acres = row.get("acre")
        return cls(address=format_address(row.get("address")), acres=acres, price=row.get("price"))

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "acres": self.acres,
            "price": self.price,
            "pricePerAcre": self.price_per_acre,
        }

@dataclass(frozen=True)
class SubjectProperty:
    address: str
    acres: float
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    market_value: Optional[float] = None
    city: Optional[str] = None
    zip_code: Optional[str] = None

    @property
    def current_price_per_acre(self) -> Optional[float]:
        value, acres = _positive(self.market_value), _positive(self.acres)
        if value is None or acres is None:
            return None
        return value / acres

@dataclass(frozen=True)
class DistanceInfo:
    nearest_city: str
    distance_text: str        # e.g. "5.2 mi"
    distance_value: int       # metres
    duration_text: str        # e.g. "12 mins"
    duration_value: int       # seconds

    def to_dict(self) -> dict:
        return {
            "nearestCity": self.nearest_city,
            "distanceText": self.distance_text,
            "distanceValue": self.distance_value,
            "durationText": self.duration_text,
            "durationValue": self.duration_value,
        }

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

@dataclass
class User:
    id: int
    firebase_uid: str
    username: str
    email: str
    credits: int = 0

@dataclass
class Parcel:
    id: int
    address: dict             # {street, city, state, zipcode}
    latitude: float
    longitude: float
    acres: float
    price: Optional[int] = None
    details: dict = field(default_factory=dict)  # gisArea, marketValue, landValue, ...
    user_id: Optional[int] = None
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def effective_acres(self) -> float:
        return float(self.details.get("gisArea") or self.acres)

    @property
    def effective_price(self) -> Optional[float]:
        value = self.details.get("marketValue") or self.price
        return float(value) if value is not None else None

    def to_subject(self) -> SubjectProperty:
        return SubjectProperty(
            address=format_address(self.address),
            acres=self.effective_acres,
            latitude=self.latitude,
            longitude=self.longitude,
            market_value=self.effective_price,
            city=self.address.get("city"),
            zip_code=self.address.get("zipcode"),
        )

@dataclass
class Analysis:
    id: int
    parcel_id: int
    user_id: int
    analysis: dict
    credits_used: int
    created_at: datetime = field(default_factory=_utcnow)

# ----- Protocols (interfaces) -----

class PropertyStore(Protocol):
    async def get_user_by_firebase_id(self, firebase_uid: str) -> Optional[User]: ...
    async def create_user(self, firebase_uid: str, username: str, email: str) -> User: ...
    async def get_parcel(self, parcel_id: int) -> Optional[Parcel]: ...
    async def get_parcels(self, user_id: int) -> List[Parcel]: ...
    async def create_parcel(
        self, user_id: int, address: dict, latitude: float, longitude: float, acres: float,
        price: Optional[int] = None, details: Optional[dict] = None,
    ) -> Parcel: ...
    async def get_similar_properties(
        self, city: str, acres: float, max_acres: float, zip_code: str, exclude_id: Optional[int] = None
    ) -> List[dict]: ...
    async def create_analysis(
        self, parcel_id: int, user_id: int, analysis: dict, credits_used: int
    ) -> Analysis: ...
    async def update_user_credits(self, user_id: int, credits: int) -> User: ...
    async def record_analysis(
        self, parcel_id: int, user_id: int, analysis: dict, credits_used: int
    ) -> Analysis: ...
    async def get_analyses_by_parcel(self, parcel_id: int) -> List[Analysis]: ...

class DistanceClient(Protocol):
    async def distance_to_city(self, latitude: float, longitude: float) -> Optional[DistanceInfo]: ...

class TokenVerifier(Protocol):
    async def verify(self, token: str) -> str: ...
