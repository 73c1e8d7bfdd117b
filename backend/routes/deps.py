from datetime import datetime, timezone

from fastapi import Depends, Request, HTTPException
from models.common import get_session
from models.profile import Profile
from sqlmodel import Session


def get_current_user_id(request: Request) -> str | None:
    return request.session.get("user_id")


def current_user_id(user_id: str | None = Depends(get_current_user_id)) -> str:
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id


def get_current_profile(
    user_id: str | None = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> Profile | None:
    if not user_id:
        return None
    return session.get(Profile, user_id)


def current_profile(
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
) -> Profile:
    profile = session.get(Profile, user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


def parse_ui_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        # Expect ISO 8601 string
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def split_multi(values: list[str] | None) -> list[str]:
    """Flatten repeated and comma separated query values

    >>> split_multi(["guitar,bass", " drums ", ""])
    ['guitar', 'bass', 'drums']
    """
    return [
        part.strip() for value in values or [] for part in value.split(",") if part.strip()
    ]
