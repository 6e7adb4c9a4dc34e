import itertools
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import httpx

from .base import Analysis, Parcel, PropertyStore, User
from ..core.config import settings
from ..services.errors import Conflict, InsufficientCredits, NotFound, UpstreamServiceFailure

logger = logging.getLogger(__name__)

# Rows returned by a similar-properties query
SIMILAR_LIMIT = 10

class InMemoryPropertyStore(PropertyStore):
    """
    Process-local store for development and tests. Read paths never mutate;
    record_analysis checks, deducts and inserts without yielding to the loop,
    so concurrent requests cannot interleave inside it.
    """
    def __init__(self):
        self.users: dict[int, User] = {}
        self.parcels: dict[int, Parcel] = {}
        self.analyses: dict[int, Analysis] = {}
        self._user_ids = itertools.count(1)
        self._parcel_ids = itertools.count(1)
        self._analysis_ids = itertools.count(1)

    # --- seeding helpers (not part of the protocol) ---

    def add_user(self, firebase_uid: str, username: str, email: str, credits: int = 0) -> User:
        user = User(id=next(self._user_ids), firebase_uid=firebase_uid,
                    username=username, email=email, credits=credits)
        self.users[user.id] = user
        return user

    def add_parcel(self, address: dict, acres: float, price: Optional[int] = None,
                   latitude: float = 0.0, longitude: float = 0.0, details: Optional[dict] = None,
                   user_id: Optional[int] = None, created_at: Optional[datetime] = None) -> Parcel:
        parcel = Parcel(id=next(self._parcel_ids), address=dict(address), latitude=latitude,
                        longitude=longitude, acres=acres, price=price, details=dict(details or {}),
                        user_id=user_id)
        if created_at is not None:
            parcel.created_at = created_at
        self.parcels[parcel.id] = parcel
        return parcel

    # --- protocol ---

    async def get_user_by_firebase_id(self, firebase_uid: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.firebase_uid == firebase_uid), None)

    async def create_user(self, firebase_uid: str, username: str, email: str) -> User:
        if any(u.username == username for u in self.users.values()):
            raise Conflict("Username already taken")
        return self.add_user(firebase_uid, username, email)

    async def get_parcel(self, parcel_id: int) -> Optional[Parcel]:
        return self.parcels.get(parcel_id)

    async def get_parcels(self, user_id: int) -> List[Parcel]:
        return [p for p in self.parcels.values() if p.user_id == user_id]

    async def create_parcel(self, user_id: int, address: dict, latitude: float, longitude: float, acres: float,
                            price: Optional[int] = None, details: Optional[dict] = None) -> Parcel:
        return self.add_parcel(address=address, acres=acres, price=price, latitude=latitude,
                               longitude=longitude, details=details, user_id=user_id)

    async def get_similar_properties(self, city: str, acres: float, max_acres: float, zip_code: str,
                                     exclude_id: Optional[int] = None) -> List[dict]:
        city_key = (city or "").strip().lower()
        matches = [
            p for p in self.parcels.values()
            if p.id != exclude_id
            and (p.address.get("city") or "").strip().lower() == city_key
            and str(p.address.get("zipcode") or "") == str(zip_code)
            and acres <= p.effective_acres <= max_acres
            and p.effective_price is not None
        ]
        matches.sort(key=lambda p: (p.created_at, p.id), reverse=True)
        return [_similar_row(p) for p in matches[:SIMILAR_LIMIT]]

    async def create_analysis(self, parcel_id: int, user_id: int, analysis: dict, credits_used: int) -> Analysis:
        record = Analysis(id=next(self._analysis_ids), parcel_id=parcel_id, user_id=user_id,
                          analysis=analysis, credits_used=credits_used)
        self.analyses[record.id] = record
        return record

    async def update_user_credits(self, user_id: int, credits: int) -> User:
        user = self.users.get(user_id)
        if user is None:
            raise NotFound("User not found")
        user.credits = credits
        return user

    async def record_analysis(self, parcel_id: int, user_id: int, analysis: dict, credits_used: int) -> Analysis:
        user = self.users.get(user_id)
        if user is None:
            raise NotFound("User not found")
        if user.credits < credits_used:
            raise InsufficientCredits()
        record = Analysis(id=next(self._analysis_ids), parcel_id=parcel_id, user_id=user_id,
                          analysis=analysis, credits_used=credits_used)
        user.credits -= credits_used
        self.analyses[record.id] = record
        return record

    async def get_analyses_by_parcel(self, parcel_id: int) -> List[Analysis]:
        return [a for a in self.analyses.values() if a.parcel_id == parcel_id]

    @classmethod
    def with_sample_data(cls, demo_credits: int = 100) -> "InMemoryPropertyStore":
        """Demo user plus Texas parcels so a fresh dev server has something to value."""
        store = cls()
        user = store.add_user("demo-user", "demo", "demo@landhacker.dev", credits=demo_credits)
        base = datetime.now(timezone.utc) - timedelta(days=30)
        samples = [
            ("1234 Ranch Road", "Austin", "78701", 25.5, 750000, 30.2672, -97.7431, "Travis"),
            ("5678 Hill Country Blvd", "Dallas", "75201", 15.3, 450000, 32.7767, -96.7970, "Dallas"),
            ("910 Longhorn Lane", "Houston", "77002", 32.7, 980000, 29.7604, -95.3698, "Harris"),
            ("88 Pecan Creek Rd", "Austin", "78701", 22.0, 528000, 30.2811, -97.7602, "Travis"),
            ("4410 Bluebonnet Trl", "Austin", "78701", 27.8, 639400, 30.2540, -97.7208, "Travis"),
            ("17 Mesquite Flats", "Austin", "78701", 24.1, 1205000, 30.2987, -97.7333, "Travis"),
            ("3021 Caliche Pass", "Austin", "78701", 29.5, 767000, 30.2450, -97.7700, "Travis"),
        ]
        for i, (street, city, zipcode, acres, price, lat, lon, county) in enumerate(samples):
            store.add_parcel(
                address={"street": street, "city": city, "state": "TX", "zipcode": zipcode},
                acres=acres, price=price, latitude=lat, longitude=lon,
                details={"gisArea": acres, "marketValue": price, "county": county},
                user_id=user.id, created_at=base + timedelta(days=i),
            )
        return store

def _similar_row(p: Parcel) -> dict:
    return {
        "id": p.id,
        "address": p.address,
        "price": p.effective_price,
        "acre": p.effective_acres,
        "pricePerAcre": p.effective_price / p.effective_acres,
        "county": p.details.get("county"),
        "latitude": p.latitude,
        "longitude": p.longitude,
        "createdAt": p.created_at.isoformat(),
    }

class HttpPropertyStore(PropertyStore):
    """
    Client for the storage service that owns users, parcels and analyses.
    The /analyses/record endpoint deducts credits and inserts in one transaction.
    """
    def __init__(self, base_url: str, timeout: float = 10, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                r = await client.request(method, f"{self.base_url}{path}", **kwargs)
            except httpx.HTTPError as exc:
                raise UpstreamServiceFailure(f"Storage unreachable: {exc}", reason="storage_unreachable") from exc
        return r

    @staticmethod
    def _check(r: httpx.Response, path: str) -> None:
        try:
            r.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise UpstreamServiceFailure(f"Storage error {r.status_code} on {path}", reason="storage_error") from exc

    async def _json(self, method: str, path: str, **kwargs):
        r = await self._request(method, path, **kwargs)
        self._check(r, path)
        return r.json()

    async def get_user_by_firebase_id(self, firebase_uid: str) -> Optional[User]:
        path = f"/users/by-firebase/{firebase_uid}"
        r = await self._request("GET", path)
        if r.status_code == 404:
            return None
        self._check(r, path)
        return _user_from_json(r.json())

    async def create_user(self, firebase_uid: str, username: str, email: str) -> User:
        r = await self._request("POST", "/users", json={
            "firebaseUid": firebase_uid, "username": username, "email": email,
        })
        if r.status_code == 409:
            raise Conflict("Username already taken")
        self._check(r, "/users")
        return _user_from_json(r.json())

    async def get_parcel(self, parcel_id: int) -> Optional[Parcel]:
        path = f"/parcels/{parcel_id}"
        r = await self._request("GET", path)
        if r.status_code == 404:
            return None
        self._check(r, path)
        return _parcel_from_json(r.json())

    async def get_parcels(self, user_id: int) -> List[Parcel]:
        items = await self._json("GET", f"/users/{user_id}/parcels")
        return [_parcel_from_json(i) for i in items]

    async def create_parcel(self, user_id: int, address: dict, latitude: float, longitude: float, acres: float,
                            price: Optional[int] = None, details: Optional[dict] = None) -> Parcel:
        j = await self._json("POST", "/parcels", json={
            "userId": user_id, "address": address, "latitude": latitude, "longitude": longitude,
            "acres": acres, "price": price, "details": details or {},
        })
        return _parcel_from_json(j)

    async def get_similar_properties(self, city: str, acres: float, max_acres: float, zip_code: str,
                                     exclude_id: Optional[int] = None) -> List[dict]:
        params = {
            "city": city, "minAcres": acres, "maxAcres": max_acres,
            "zipCode": zip_code, "limit": SIMILAR_LIMIT,
        }
        if exclude_id is not None:
            params["excludeId"] = exclude_id
        return await self._json("GET", "/parcels/similar", params=params)

    async def create_analysis(self, parcel_id: int, user_id: int, analysis: dict, credits_used: int) -> Analysis:
        j = await self._json("POST", "/analyses", json={
            "parcelId": parcel_id, "userId": user_id, "analysis": analysis, "creditsUsed": credits_used,
        })
        return _analysis_from_json(j)

    async def update_user_credits(self, user_id: int, credits: int) -> User:
        j = await self._json("PATCH", f"/users/{user_id}/credits", json={"credits": credits})
        return _user_from_json(j)

    async def record_analysis(self, parcel_id: int, user_id: int, analysis: dict, credits_used: int) -> Analysis:
        r = await self._request("POST", "/analyses/record", json={
            "parcelId": parcel_id, "userId": user_id, "analysis": analysis, "creditsUsed": credits_used,
        })
        if r.status_code == 402:
            raise InsufficientCredits()
        if r.status_code == 404:
            raise NotFound("User not found")
        self._check(r, "/analyses/record")
        return _analysis_from_json(r.json())

    async def get_analyses_by_parcel(self, parcel_id: int) -> List[Analysis]:
        items = await self._json("GET", f"/parcels/{parcel_id}/analyses")
        return [_analysis_from_json(i) for i in items]

def _user_from_json(j: dict) -> User:
    return User(id=j["id"], firebase_uid=j["firebaseUid"], username=j["username"],
                email=j["email"], credits=int(j.get("credits", 0)))

def _parcel_from_json(j: dict) -> Parcel:
    parcel = Parcel(id=j["id"], address=j["address"], latitude=float(j["latitude"]),
                    longitude=float(j["longitude"]), acres=float(j["acres"]), price=j.get("price"),
                    details=j.get("details") or {}, user_id=j.get("userId"))
    if j.get("createdAt"):
        parcel.created_at = datetime.fromisoformat(j["createdAt"])
    return parcel

def _analysis_from_json(j: dict) -> Analysis:
    record = Analysis(id=j["id"], parcel_id=j["parcelId"], user_id=j["userId"],
                      analysis=j["analysis"], credits_used=j["creditsUsed"])
    if j.get("createdAt"):
        record.created_at = datetime.fromisoformat(j["createdAt"])
    return record

def property_store() -> PropertyStore:
    """
    Factory picks the in-memory or http store based on env flags.
    """
    if settings.STORAGE_PROVIDER == "http" and settings.STORAGE_BASE_URL:
        return HttpPropertyStore(settings.STORAGE_BASE_URL)
    logger.info("Using in-memory property store with sample data")
    return InMemoryPropertyStore.with_sample_data(settings.DEMO_USER_CREDITS)
