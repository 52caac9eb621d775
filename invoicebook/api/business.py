# invoicebook/api/business.py

from fastapi import APIRouter, Depends, HTTPException

from invoicebook.api.deps import get_store
from invoicebook.db.store import Store
from invoicebook.models.business import BusinessProfile, BusinessProfileIn

router = APIRouter(prefix="/business-profile", tags=["business-profile"])


@router.get("", response_model=BusinessProfile)
async def get_business_profile(store: Store = Depends(get_store)) -> BusinessProfile:
    profile = await store.business_profile.get()
    if profile is None:
        raise HTTPException(status_code=404, detail="Business profile not set up")
    return profile


@router.put("", response_model=BusinessProfile)
async def save_business_profile(
    payload: BusinessProfileIn, store: Store = Depends(get_store)
) -> BusinessProfile:
    """
    Create or replace the business profile. There is only ever one.
    """
    return await store.business_profile.put(payload.to_profile())
