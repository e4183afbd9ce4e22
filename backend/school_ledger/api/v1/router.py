from fastapi import APIRouter
from school_ledger.api.v1.endpoints import (
    attendance,
    auth,
    classes,
    fees,
    health,
    hostel,
    inventory,
    library,
    students,
)

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(classes.router)
api_router.include_router(students.router)
api_router.include_router(attendance.router)
api_router.include_router(library.router)
api_router.include_router(inventory.router)
api_router.include_router(hostel.router)
api_router.include_router(fees.router)
