# api/v1/router.py
from fastapi import APIRouter

from . import users, prefs, targets

api_router = APIRouter()

api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(
    targets.router, prefix="/nutrition-targets", tags=["Nutrition targets"]
)

# preferences live *under* the user resource
api_router.include_router(
    prefs.router,
    prefix="/users",          # results in /users/{user_id}/preferences
    tags=["Preferences"],
)
