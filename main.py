from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text
from app.database import get_db
from app.core.config import settings
from app.core.exceptions import DispatchError
from app.crud.subscriptions import SubscriptionHub
from app.routers import cleaning_job, job, notification, properties, team_member, worker
from app.services.geocoding import GeocodingService
from app.services.job import PendingJobOutbox
from app.core.logging_config import logger

# Tables are managed by Alembic migrations

app = FastAPI(
    title="Gig Dispatch API",
    version="1.0.0",
    redirect_slashes=False  # Disable automatic redirects to prevent POST data loss
)

# Process-wide collaborators shared by every request-scoped store handle
app.state.hub = SubscriptionHub()
app.state.outbox = PendingJobOutbox()
app.state.geocoder = GeocodingService(
    api_key=settings.GOOGLE_MAPS_API_KEY,
    fallback_lat=settings.FALLBACK_LATITUDE,
    fallback_lng=settings.FALLBACK_LONGITUDE,
    jitter=settings.FALLBACK_JITTER,
)

# Configure CORS for frontend applications
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:8081"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DispatchError)
async def dispatch_error_handler(request: Request, exc: DispatchError):
    logger.warning(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# Include routers
app.include_router(job.router, prefix="/api/jobs", tags=["Jobs"])
app.include_router(worker.router, prefix="/api/workers", tags=["Workers"])
app.include_router(cleaning_job.router, prefix="/api/cleaning-jobs", tags=["Cleaning Jobs"])
app.include_router(team_member.router, prefix="/api/team-members", tags=["Team Members"])
app.include_router(properties.router, prefix="/api/properties", tags=["Properties"])
app.include_router(notification.router, prefix="/api/notifications", tags=["Notifications"])


@app.get("/health")
async def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "database": "connected",
            "pendingJobs": len(app.state.outbox),
        }
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service unhealthy"
        )
