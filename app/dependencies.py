from fastapi import Depends, HTTPException, status, Request
from jose import JWTError
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from app.database import get_db
from app.core.security import verify_token
from app.crud.base import DocumentStore
from app.crud.subscriptions import SubscriptionHub
from app.schemas.user import ADMIN_ROLES, Actor, UserRole
from app.services.cleaning_job import CleaningJobService
from app.services.job import JobService
from app.services.notifications import StoreNotificationSink
from app.services.property import PropertyService
from app.services.reconciler import AssignmentReconciler
from app.services.team_member import TeamMemberService
from app.services.worker_queue import QueueManager, cleaning_queue_config, trash_queue_config


def get_current_actor(request: Request) -> Actor:
    """
    Extract and validate the JWT from the Authorization Bearer header and
    build the acting identity from its claims.

    Raises:
        HTTPException: If the token is missing, invalid or has no uid
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    authorization = request.headers.get("Authorization")
    if not authorization or not authorization.startswith("Bearer "):
        raise credentials_exception
    token = authorization.replace("Bearer ", "")

    try:
        payload = verify_token(token)
        if not payload.get("uid"):
            raise credentials_exception
        return Actor.model_validate(payload)
    except (JWTError, PydanticValidationError):
        raise credentials_exception


def require_roles(*roles: UserRole):
    """Dependency factory admitting the given roles plus the admin roles."""
    allowed = set(roles) | set(ADMIN_ROLES)

    def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not permitted for this role",
            )
        return actor

    return dependency


def get_hub(request: Request) -> SubscriptionHub:
    return request.app.state.hub


def get_store(db: Session = Depends(get_db), hub: SubscriptionHub = Depends(get_hub)) -> DocumentStore:
    return DocumentStore(db, hub)


def get_notifier(store: DocumentStore = Depends(get_store)) -> StoreNotificationSink:
    return StoreNotificationSink(store)


def get_job_service(
    request: Request,
    store: DocumentStore = Depends(get_store),
    notifier: StoreNotificationSink = Depends(get_notifier),
) -> JobService:
    return JobService(
        store,
        QueueManager(store, trash_queue_config()),
        notifier,
        geocoder=request.app.state.geocoder,
        outbox=request.app.state.outbox,
    )


def get_team_member_service(store: DocumentStore = Depends(get_store)) -> TeamMemberService:
    reconciler = AssignmentReconciler(store, cleaning_queue=QueueManager(store, cleaning_queue_config()))
    return TeamMemberService(store, reconciler)


def get_cleaning_job_service(
    request: Request,
    store: DocumentStore = Depends(get_store),
    notifier: StoreNotificationSink = Depends(get_notifier),
    team: TeamMemberService = Depends(get_team_member_service),
) -> CleaningJobService:
    return CleaningJobService(
        store,
        QueueManager(store, cleaning_queue_config()),
        team,
        notifier,
        geocoder=request.app.state.geocoder,
    )


def get_property_service(request: Request, store: DocumentStore = Depends(get_store)) -> PropertyService:
    return PropertyService(store, geocoder=request.app.state.geocoder)
