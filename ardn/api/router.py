from fastapi import APIRouter

from ardn.api import activities, auth, participations, programs, reports, students, system

api_router = APIRouter()
api_router.include_router(system.router)
api_router.include_router(auth.router)
api_router.include_router(programs.router)
api_router.include_router(students.router)
api_router.include_router(activities.router)
api_router.include_router(participations.router)
api_router.include_router(reports.router)
