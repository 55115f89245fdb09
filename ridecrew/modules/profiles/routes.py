from fastapi import APIRouter, Depends, File, UploadFile
from ridecrew.core.dependencies import get_session_context, require_session
from ridecrew.core.errors import envelope_response
from ridecrew.core.session import SessionContext
from ridecrew.database.supabase_client import get_supabase
from ridecrew.modules.profiles.schemas import ProfileUpdate, OnboardingRequest
from ridecrew.modules.profiles.service import ProfileService
from supabase import Client

router = APIRouter(prefix="/profiles", tags=["profiles"])


def get_profile_service(
    supabase: Client = Depends(get_supabase),
    session: SessionContext = Depends(get_session_context)
) -> ProfileService:
    return ProfileService(supabase, session)


@router.get("")
async def list_profiles(
    session: SessionContext = Depends(require_session),
    service: ProfileService = Depends(get_profile_service)
):
    """Team roster"""
    return envelope_response(service.get_all_profiles())


@router.get("/me")
async def get_my_profile(service: ProfileService = Depends(get_profile_service)):
    return envelope_response(service.get_current_user_profile())


@router.post("/me/onboarding")
async def complete_onboarding(
    data: OnboardingRequest,
    session: SessionContext = Depends(require_session),
    service: ProfileService = Depends(get_profile_service)
):
    return envelope_response(service.complete_onboarding(data))


@router.get("/{user_id}")
async def get_profile(
    user_id: str,
    session: SessionContext = Depends(require_session),
    service: ProfileService = Depends(get_profile_service)
):
    return envelope_response(service.get_profile(user_id))


@router.get("/{user_id}/stats")
async def get_profile_with_stats(
    user_id: str,
    session: SessionContext = Depends(require_session),
    service: ProfileService = Depends(get_profile_service)
):
    return envelope_response(service.get_profile_with_stats(user_id))


@router.put("/{user_id}")
async def update_profile(
    user_id: str,
    updates: ProfileUpdate,
    service: ProfileService = Depends(get_profile_service)
):
    """Update a profile (owner only)"""
    return envelope_response(service.update_profile(user_id, updates))


@router.post("/{user_id}/avatar", status_code=201)
async def upload_avatar(
    user_id: str,
    file: UploadFile = File(...),
    service: ProfileService = Depends(get_profile_service)
):
    content = await file.read()
    return envelope_response(
        service.upload_avatar(user_id, file.filename or "", content, file.content_type or "application/octet-stream"),
        success_status=201,
    )


@router.delete("/{user_id}/avatar")
async def delete_avatar(
    user_id: str,
    service: ProfileService = Depends(get_profile_service)
):
    return envelope_response(service.delete_avatar(user_id))
