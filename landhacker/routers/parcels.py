from fastapi import APIRouter, Depends, Request
from ..schemas import ParcelCreate, ParcelOut
from ..data.base import Parcel, User
from ..core.security import require_user

router = APIRouter()

def parcel_out(parcel: Parcel) -> dict:
    return {
        "id": parcel.id,
        "userId": parcel.user_id,
        "address": parcel.address,
        "latitude": parcel.latitude,
        "longitude": parcel.longitude,
        "acres": parcel.acres,
        "price": parcel.price,
        "details": parcel.details,
        "createdAt": parcel.created_at.isoformat(),
    }

@router.get("/parcels", response_model=list[ParcelOut])
async def get_parcels(request: Request, user: User = Depends(require_user)):
    parcels = await request.app.state.store.get_parcels(user.id)
    return [parcel_out(p) for p in parcels]

@router.post("/parcels", response_model=ParcelOut)
async def post_parcel(body: ParcelCreate, request: Request, user: User = Depends(require_user)):
    parcel = await request.app.state.store.create_parcel(
        user_id=user.id,
        address=body.address.model_dump(),
        latitude=body.latitude,
        longitude=body.longitude,
        acres=body.acres,
        price=body.price,
        details=body.details,
    )
    return parcel_out(parcel)
