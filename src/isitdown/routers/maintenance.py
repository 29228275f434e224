"""
Signed-in housekeeping: wipe crowd reports and reset every website to up.
"""
from fastapi import APIRouter, Depends, HTTPException, Response, status

from isitdown import incidents as incident_service
from isitdown.auth import get_current_user
from isitdown.models.user import User
from isitdown.routers.incidents import REPORTED_COOKIE

router = APIRouter(prefix="/api/data", tags=["maintenance"])


@router.post("/clear")
async def clear_data(response: Response, user: User = Depends(get_current_user)):
    # This browser may report again afterwards
    response.delete_cookie(REPORTED_COOKIE)
    if not await incident_service.clear_all_data():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data could not be cleared, please try again later",
        )
    return {"message": "All report data cleared"}
