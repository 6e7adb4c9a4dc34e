import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from ..schemas import LoginRequest, MarketingRequest, MarketingResponse, UserOut
from ..data.base import User
from ..core.security import require_uid, require_user
from ..core.utils import format_address

logger = logging.getLogger(__name__)

router = APIRouter()

def user_out(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "firebaseUid": user.firebase_uid,
        "credits": user.credits,
    }

@router.post("/auth/login", response_model=UserOut)
async def post_login(body: LoginRequest, request: Request, uid: str = Depends(require_uid)):
    """
    First login creates the account; later logins return it unchanged.
    """
    store = request.app.state.store
    user = await store.get_user_by_firebase_id(uid)
    if user is None:
        username = body.username or body.email.split("@")[0] or "user"
        # Raises Conflict (409) when the username is taken
        user = await store.create_user(firebase_uid=uid, username=username, email=body.email)
        logger.info("Created account for new login", extra={"user_id": user.id})
    return user_out(user)

@router.get("/user", response_model=UserOut)
async def get_user(user: User = Depends(require_user)):
    return user_out(user)

@router.post("/marketing/description", response_model=MarketingResponse)
async def post_marketing_description(
    body: MarketingRequest,
    request: Request,
    _user: User = Depends(require_user),
):
    details = dict(body.property_details or {})
    if body.parcel_id is not None:
        parcel = await request.app.state.store.get_parcel(body.parcel_id)
        if parcel is None:
            raise HTTPException(status_code=404, detail="Parcel not found")
        details = {
            "address": format_address(parcel.address),
            "acres": parcel.effective_acres,
            "price": parcel.effective_price,
            "county": parcel.details.get("county"),
            **details,
        }
    if not details:
        raise HTTPException(status_code=400, detail="parcelId or propertyDetails is required")
    description = await request.app.state.model.generate_marketing_description(details, body.target_audience)
    return {"description": description}
