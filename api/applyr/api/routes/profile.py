from fastapi import APIRouter, Depends

from applyr.api.deps import get_profile_service
from applyr.core.security import CurrentUser, get_current_user
from applyr.schemas.common import Envelope
from applyr.schemas.profiles import (
    PreferencesUpdateRequest,
    ProfileOut,
    ProfileUpdateRequest,
    SkillsUpdateRequest,
)
from applyr.services.profiles import ProfileService

router = APIRouter()


@router.get("", response_model=Envelope[ProfileOut])
async def get_profile(
    user: CurrentUser = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service),
) -> Envelope[ProfileOut]:
    profile = await service.get_or_create_profile(user.id)
    return Envelope[ProfileOut](data=ProfileOut(**profile))


@router.patch("", response_model=Envelope[ProfileOut])
async def update_profile(
    payload: ProfileUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service),
) -> Envelope[ProfileOut]:
    profile = await service.update_profile(user.id, payload.model_dump(exclude_unset=True))
    return Envelope[ProfileOut](data=ProfileOut(**profile))


@router.patch("/skills", response_model=Envelope[ProfileOut])
async def update_skills(
    payload: SkillsUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service),
) -> Envelope[ProfileOut]:
    profile = await service.update_skills(user.id, payload.skills)
    return Envelope[ProfileOut](data=ProfileOut(**profile))


@router.patch("/preferences", response_model=Envelope[ProfileOut])
async def update_preferences(
    payload: PreferencesUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service),
) -> Envelope[ProfileOut]:
    profile = await service.update_preferences(user.id, payload.model_dump(exclude_unset=True))
    return Envelope[ProfileOut](data=ProfileOut(**profile))


@router.delete("", response_model=Envelope[ProfileOut])
async def delete_profile(
    user: CurrentUser = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service),
) -> Envelope[ProfileOut]:
    profile = await service.delete_profile(user.id)
    return Envelope[ProfileOut](data=ProfileOut(**profile))
