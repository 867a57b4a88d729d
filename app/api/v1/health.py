from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.lifespan import Services, get_services

router = APIRouter()


@router.get("/health", summary="Health Check", description="Check the health status of the application and its database.")
def health_check(services: Services = Depends(get_services)):
    if not services.store.ping():
        return JSONResponse(status_code=503, content={"status": "unhealthy", "database": "unavailable"})
    return {"status": "healthy", "database": "ok"}
