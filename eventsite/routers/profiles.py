from fastapi import APIRouter, Depends, HTTPException, Response, status
from loguru import logger

from eventsite.crud import profile_crud
from eventsite.deps import get_real_session, require_identity
from eventsite.identity import EffectiveIdentity, RealSession
from eventsite.schemas import MeResponse, ProfileBootstrap, ProfileResponse

router = APIRouter(tags=["profiles"])


@router.get("/me", response_model=MeResponse)
async def whoami(
    identity: EffectiveIdentity = Depends(require_identity),
) -> MeResponse:
    return MeResponse(
        id=identity.id,
        email=identity.email,
        role=identity.role,
        is_synthetic_preview=identity.is_synthetic_preview,
        real_id=identity.real_id,
    )


@router.post("/profiles/me", response_model=ProfileResponse)
async def bootstrap_profile(
    payload: ProfileBootstrap,
    response: Response,
    real_session: RealSession | None = Depends(get_real_session),
) -> ProfileResponse:
    """
    Called once the gateway has signed someone in. Creates their profile with
    the base role on first sign-in; later calls are idempotent.
    Always acts on the REAL identity, never on a preview identity.
    """
    if real_session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Sign-in required"
        )

    profile, created = await profile_crud.ensure_profile(
        real_session.id,
        email=real_session.email,
        full_name=payload.full_name,
        referred_by=payload.referred_by,
    )
    if created:
        logger.info("Profile created for {} (referred_by={})", profile.id, profile.referred_by_id)
        response.status_code = status.HTTP_201_CREATED
    return ProfileResponse.model_validate(profile)
