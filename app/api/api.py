from fastapi import APIRouter
from app.api.v1 import doctors, appointments, queue, packages

api_router = APIRouter()

api_router.include_router(doctors.router, prefix="/doctors", tags=["doctors"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
api_router.include_router(queue.router, prefix="/queue", tags=["queue"])
api_router.include_router(packages.router, prefix="/packages", tags=["packages"])
