import tomllib
from fastapi import APIRouter, Depends, Request

from models.profile import Profile
from routes.deps import get_current_profile, get_current_user_id
from settings import PROJECT_PATH

router = APIRouter()


def get_version() -> str:
    with open(PROJECT_PATH / "pyproject.toml", "rb") as f:
        pyproject = tomllib.load(f)
    return pyproject["project"]["version"]


@router.get("/")
async def index():
    return {"version": get_version(), "status": "ok"}


@router.get("/user/me")
async def get_current_user_info(
    user_id: str | None = Depends(get_current_user_id),
    profile: Profile | None = Depends(get_current_profile),
):
    if not user_id:
        return {"user": None}

    return {
        "user": {
            "id": user_id,
            "profile": profile.to_public() if profile else None,
        }
    }


@router.post("/logout")
async def logout(request: Request):
    request.session.clear()
    return {"message": "Logged out successfully"}


@router.get("/profile/check")
async def profile_check(
    user_id: str | None = Depends(get_current_user_id),
    profile: Profile | None = Depends(get_current_profile),
):
    """Whether the signed-in user already completed onboarding"""
    return {"authenticated": bool(user_id), "exists": profile is not None}
