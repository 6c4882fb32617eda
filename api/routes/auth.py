"""Auth API routes.

Tokens are issued elsewhere; this router only reports who the bearer is.
"""

from fastapi import APIRouter, Depends

from api.deps import get_current_user
from api.schemas import envelope

router = APIRouter()

PROFILE_CLAIMS = ("email", "name", "first_name", "last_name", "role")


@router.get("/profile")
async def profile(user: dict = Depends(get_current_user)):
    """Identity claims of the verified bearer token."""
    data = {"id": user["id"]}
    data.update({claim: user[claim] for claim in PROFILE_CLAIMS if claim in user})
    return envelope(data)
