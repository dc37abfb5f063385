from fastapi import APIRouter

# Public: showings and seat maps
from boxoffice.api.v1.public.showings import router as public_showings_router

# Public: quote and commit
from boxoffice.api.v1.public.payments import router as payments_router
from boxoffice.api.v1.public.reservations import router as reservations_router

# Admin
from boxoffice.api.v1.admin.rooms import router as rooms_router
from boxoffice.api.v1.admin.showings import router as admin_showings_router
from boxoffice.api.v1.admin.reservations import router as admin_reservations_router

api_router = APIRouter()

# --- Public ---
api_router.include_router(public_showings_router)
api_router.include_router(payments_router)
api_router.include_router(reservations_router)

# --- Admin ---
api_router.include_router(rooms_router)
api_router.include_router(admin_showings_router)
api_router.include_router(admin_reservations_router)
