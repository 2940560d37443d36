"""
FastAPI Persona API Server

REST endpoints for person search, history, favorites, account management,
guest mode and crowdsourced submissions. Runs as the local backend of the
web/desktop frontend; guest data lives on this device.

Identity comes from the trusted X-User-Id / X-User-Email headers set by the
auth gateway in front of this service. The storage mode is resolved fresh
on every request.

Usage:
    uvicorn api.server:app --reload --port 8000
"""

import os
import time
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi import FastAPI, HTTPException, Depends, Header, Query

from api.models import (
    SearchRequest,
    SearchOutcomeResponse,
    HistoryEntryResponse,
    FavoriteCreateRequest,
    FavoriteUpdateRequest,
    FavoriteResponse,
    FavoriteStatusResponse,
    DeleteResponse,
    UserProfileResponse,
    ProfileUpdateRequest,
    GuestStatusResponse,
    SubmissionCreateRequest,
    SubmissionCreatedResponse,
    SubmissionStatusRequest,
    SubmissionResponse,
    HealthResponse,
    ErrorResponse,
)
from api.middleware import (
    setup_cors,
    setup_exception_handlers,
    RequestLoggingMiddleware,
)
from config_manager import get_config, setup_logging, ConfigManager
from database.connection import DatabaseSessionProvider, DatabaseSettings, init_db
from database.monitoring import get_db_metrics
from errors import AuthRequiredError, NotFoundError
from providers.client import HttpProviderClient, ProviderClient
from search.orchestrator import SearchInput, SearchOrchestrator
from storage.base import StorageBackend
from storage.entities import Identity
from storage.local import FileMedium, GuestSession, LocalMedium
from storage.mode import GuestMode, Mode, ModeResolver
from storage.submissions import SubmissionStore

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
CONFIG_PATH = os.getenv("CONFIG_PATH")

_startup_time: Optional[datetime] = None


# ============================================
# SERVICES
# ============================================

@dataclass
class Services:
    """Everything the endpoints need, wired once per process"""
    config: ConfigManager
    db_provider: DatabaseSessionProvider
    guest_session: GuestSession
    resolver: ModeResolver
    orchestrator: SearchOrchestrator
    submissions: SubmissionStore
    provider_client: Any


def build_services(
    config: Optional[ConfigManager] = None,
    db_provider: Optional[DatabaseSessionProvider] = None,
    provider_client: Optional[ProviderClient] = None,
    medium: Optional[LocalMedium] = None
) -> Services:
    """Wire the services from config; any piece may be passed in instead."""
    config = config or get_config(CONFIG_PATH)
    if db_provider is None:
        db_provider = init_db(DatabaseSettings.from_config(config.database))
    if medium is None:
        medium = FileMedium(config.storage.local_data_dir, config.storage.local_quota_bytes)
    if provider_client is None:
        provider_client = HttpProviderClient(config.provider)

    guest_session = GuestSession(medium, config.storage.storage_key, config.storage.guest_flag_key)
    resolver = ModeResolver(guest_session, db_provider)
    return Services(
        config=config,
        db_provider=db_provider,
        guest_session=guest_session,
        resolver=resolver,
        orchestrator=SearchOrchestrator(provider_client, resolver.backend_for),
        submissions=SubmissionStore(db_provider, config.search.pending_submissions_limit),
        provider_client=provider_client,
    )


_services: Optional[Services] = None


def configure_services(services: Optional[Services]) -> None:
    """Install the services to use (tests pass in-memory ones; None resets)."""
    global _services
    _services = services


def get_services() -> Services:
    """Dependency to get the services, building them on first use."""
    global _services
    if _services is None:
        _services = build_services()
    return _services


# ============================================
# REQUEST DEPENDENCIES
# ============================================

def get_identity(
    x_user_id: Optional[str] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None),
) -> Optional[Identity]:
    """The signed-in user reported by the auth gateway, if any."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        return None
    if len(user_id) > 64:
        raise HTTPException(status_code=400, detail="X-User-Id is too long")
    return Identity(id=user_id, email=(x_user_email or "").strip() or None)


def get_mode(
    identity: Optional[Identity] = Depends(get_identity),
    services: Services = Depends(get_services),
) -> Mode:
    return services.resolver.resolve(identity)


def get_backend(
    mode: Mode = Depends(get_mode),
    services: Services = Depends(get_services),
) -> StorageBackend:
    return services.resolver.backend_for(mode)


def require_verifier(
    identity: Optional[Identity] = Depends(get_identity),
    services: Services = Depends(get_services),
) -> Identity:
    """Reviewing submissions is limited to the configured verifier emails."""
    if identity is None:
        raise AuthRequiredError()
    if not services.config.is_verifier(identity.email):
        raise HTTPException(status_code=403, detail="Verifier access required")
    return identity


# ============================================
# APPLICATION
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and services on startup; release them on shutdown."""
    global _startup_time

    services = get_services()
    setup_logging(services.config)
    _startup_time = datetime.now(timezone.utc)
    logger.info("Persona API %s ready", API_VERSION)

    yield

    logger.info("Shutting down Persona API...")
    close = getattr(services.provider_client, "aclose", None)
    if close is not None:
        await close()
    services.db_provider.close()


app = FastAPI(
    title="Persona API",
    description="People search with history, favorites, guest mode and verified submissions",
    version=API_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

setup_cors(app, get_config(CONFIG_PATH).api.cors_origins)
app.add_middleware(RequestLoggingMiddleware)
setup_exception_handlers(app)

ERROR_RESPONSES = {
    401: {"model": ErrorResponse, "description": "Sign-in required"},
    422: {"model": ErrorResponse, "description": "Validation error"},
    503: {"model": ErrorResponse, "description": "Storage unavailable"},
    507: {"model": ErrorResponse, "description": "Local storage full"},
}
NOT_FOUND = {404: {"model": ErrorResponse, "description": "Not found"}}


# ============================================
# SEARCH & RESULTS
# ============================================

@app.post(
    "/api/v1/search",
    response_model=SearchOutcomeResponse,
    responses=ERROR_RESPONSES,
    summary="Search for a person",
    description="Query every data category, score the findings and save the result",
)
async def search_person(
    request: SearchRequest,
    mode: Mode = Depends(get_mode),
    services: Services = Depends(get_services),
):
    start_time = time.time()
    outcome = await services.orchestrator.search_person(SearchInput(**request.model_dump()), mode)
    logger.debug("Search finished in %dms", int((time.time() - start_time) * 1000))
    return outcome.to_dict()


@app.get(
    "/api/v1/results/{query_id}",
    response_model=SearchOutcomeResponse,
    responses={**ERROR_RESPONSES, **NOT_FOUND},
    summary="Get a stored search result",
)
async def get_result(query_id: str, backend: StorageBackend = Depends(get_backend)):
    return backend.get_result_by_query_id(backend.owner_id, query_id).to_dict()


@app.delete(
    "/api/v1/queries/{query_id}",
    response_model=DeleteResponse,
    responses={**ERROR_RESPONSES, **NOT_FOUND},
    summary="Delete a search with its result, history and favorites",
)
async def delete_query(query_id: str, backend: StorageBackend = Depends(get_backend)):
    backend.delete_query(backend.owner_id, query_id)
    return DeleteResponse(deleted=True)


# ============================================
# HISTORY
# ============================================

@app.get(
    "/api/v1/history",
    response_model=List[HistoryEntryResponse],
    responses=ERROR_RESPONSES,
    summary="Search history, newest first",
)
async def get_history(
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    backend: StorageBackend = Depends(get_backend),
    services: Services = Depends(get_services),
):
    return backend.get_history(backend.owner_id, limit or services.config.search.history_limit)


@app.delete(
    "/api/v1/history/{history_id}",
    response_model=DeleteResponse,
    responses={**ERROR_RESPONSES, **NOT_FOUND},
    summary="Delete one history entry",
)
async def delete_history_entry(history_id: str, backend: StorageBackend = Depends(get_backend)):
    if not backend.delete_history_entry(backend.owner_id, history_id):
        raise NotFoundError(f"History entry not found: {history_id}")
    return DeleteResponse(deleted=True)


@app.delete(
    "/api/v1/history",
    response_model=DeleteResponse,
    responses=ERROR_RESPONSES,
    summary="Clear the search history",
)
async def delete_all_history(backend: StorageBackend = Depends(get_backend)):
    count = backend.delete_all_history(backend.owner_id)
    return DeleteResponse(deleted=count > 0, count=count)


# ============================================
# FAVORITES
# ============================================

@app.get(
    "/api/v1/favorites",
    response_model=List[FavoriteResponse],
    responses=ERROR_RESPONSES,
    summary="Favorite searches, newest first",
)
async def get_favorites(backend: StorageBackend = Depends(get_backend)):
    return backend.get_favorites(backend.owner_id)


@app.post(
    "/api/v1/favorites",
    response_model=FavoriteResponse,
    responses={**ERROR_RESPONSES, **NOT_FOUND},
    summary="Favorite a search (idempotent)",
)
async def add_favorite(request: FavoriteCreateRequest, backend: StorageBackend = Depends(get_backend)):
    return backend.add_favorite(backend.owner_id, request.search_query_id, request.label).to_dict()


@app.patch(
    "/api/v1/favorites/{favorite_id}",
    response_model=FavoriteResponse,
    responses={**ERROR_RESPONSES, **NOT_FOUND},
    summary="Relabel a favorite",
)
async def update_favorite(
    favorite_id: str,
    request: FavoriteUpdateRequest,
    backend: StorageBackend = Depends(get_backend),
):
    return backend.update_favorite_label(backend.owner_id, favorite_id, request.label).to_dict()


@app.delete(
    "/api/v1/favorites/{favorite_id}",
    response_model=DeleteResponse,
    responses={**ERROR_RESPONSES, **NOT_FOUND},
    summary="Remove a favorite",
)
async def remove_favorite(favorite_id: str, backend: StorageBackend = Depends(get_backend)):
    if not backend.remove_favorite(backend.owner_id, favorite_id):
        raise NotFoundError(f"Favorite not found: {favorite_id}")
    return DeleteResponse(deleted=True)


@app.get(
    "/api/v1/favorites/status/{query_id}",
    response_model=FavoriteStatusResponse,
    responses=ERROR_RESPONSES,
    summary="Whether a search is favorited",
)
async def favorite_status(query_id: str, backend: StorageBackend = Depends(get_backend)):
    return FavoriteStatusResponse(
        search_query_id=query_id,
        is_favorited=backend.is_favorited(backend.owner_id, query_id),
    )


# ============================================
# ACCOUNT
# ============================================

@app.get(
    "/api/v1/profile",
    response_model=UserProfileResponse,
    responses=ERROR_RESPONSES,
    summary="Account profile",
)
async def get_profile(backend: StorageBackend = Depends(get_backend)):
    return backend.get_profile(backend.owner_id).to_dict()


@app.patch(
    "/api/v1/profile",
    response_model=UserProfileResponse,
    responses=ERROR_RESPONSES,
    summary="Update the account name",
)
async def update_profile(request: ProfileUpdateRequest, backend: StorageBackend = Depends(get_backend)):
    patch = request.model_dump(exclude_unset=True)
    return backend.update_profile(backend.owner_id, patch).to_dict()


@app.delete(
    "/api/v1/account",
    response_model=DeleteResponse,
    responses={**ERROR_RESPONSES, **NOT_FOUND},
    summary="Delete the account and everything it owns",
)
async def delete_account(
    mode: Mode = Depends(get_mode),
    services: Services = Depends(get_services),
):
    if isinstance(mode, GuestMode):
        services.guest_session.disable()
    else:
        backend = services.resolver.backend_for(mode)
        backend.delete_account(backend.owner_id)
    return DeleteResponse(deleted=True)


# ============================================
# GUEST MODE
# ============================================

@app.get(
    "/api/v1/guest",
    response_model=GuestStatusResponse,
    summary="Guest mode status",
)
async def guest_status(services: Services = Depends(get_services)):
    if not services.guest_session.is_guest_mode():
        return GuestStatusResponse(guest_mode=False)
    store = services.guest_session.store()
    return GuestStatusResponse(guest_mode=True, profile=store.get_profile(store.owner_id).to_dict())


@app.post(
    "/api/v1/guest/enable",
    response_model=GuestStatusResponse,
    responses={507: ERROR_RESPONSES[507]},
    summary="Switch this device to guest mode",
)
async def enable_guest(services: Services = Depends(get_services)):
    profile = services.guest_session.enable()
    return GuestStatusResponse(guest_mode=True, profile=profile.to_dict())


@app.post(
    "/api/v1/guest/disable",
    response_model=GuestStatusResponse,
    summary="Leave guest mode and delete all guest data",
)
async def disable_guest(services: Services = Depends(get_services)):
    services.guest_session.disable()
    return GuestStatusResponse(guest_mode=False)


# ============================================
# SUBMISSIONS
# ============================================

@app.post(
    "/api/v1/submissions",
    response_model=SubmissionCreatedResponse,
    responses=ERROR_RESPONSES,
    summary="Submit person information with proof",
)
async def create_submission(
    request: SubmissionCreateRequest,
    mode: Mode = Depends(get_mode),
    services: Services = Depends(get_services),
):
    return services.submissions.create_submission(request.model_dump(), mode)


@app.get(
    "/api/v1/submissions/approved",
    response_model=List[SubmissionResponse],
    responses=ERROR_RESPONSES,
    summary="Approved submissions for a profile or a name",
)
async def approved_submissions(
    person_profile_id: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    services: Services = Depends(get_services),
):
    return services.submissions.get_approved_submissions(person_profile_id, first_name, last_name)


@app.get(
    "/api/v1/submissions/pending",
    response_model=List[SubmissionResponse],
    responses={**ERROR_RESPONSES, 403: {"model": ErrorResponse, "description": "Not a verifier"}},
    summary="Submissions awaiting review, newest first",
)
async def pending_submissions(
    reviewer: Identity = Depends(require_verifier),
    services: Services = Depends(get_services),
):
    return services.submissions.get_pending_submissions()


@app.patch(
    "/api/v1/submissions/{submission_id}",
    response_model=SubmissionResponse,
    responses={**ERROR_RESPONSES, **NOT_FOUND, 403: {"model": ErrorResponse, "description": "Not a verifier"}},
    summary="Approve or reject a submission",
)
async def review_submission(
    submission_id: str,
    request: SubmissionStatusRequest,
    reviewer: Identity = Depends(require_verifier),
    services: Services = Depends(get_services),
):
    return services.submissions.update_submission_status(
        submission_id, request.status, reviewer, request.reviewer_notes
    )


# ============================================
# HEALTH
# ============================================

@app.get(
    "/api/v1/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Database connectivity, guest mode and timing metrics",
)
async def health_check(services: Services = Depends(get_services)):
    """Always returns HTTP 200; problems are reported in the body."""
    uptime_seconds = None
    if _startup_time:
        uptime_seconds = int((datetime.now(timezone.utc) - _startup_time).total_seconds())

    try:
        database_ok = services.db_provider.health_check()
        return HealthResponse(
            status="healthy" if database_ok else "degraded",
            database="ok" if database_ok else "error",
            guest_mode=services.guest_session.is_guest_mode(),
            version=API_VERSION,
            uptime_seconds=uptime_seconds,
            metrics=get_db_metrics(),
        )
    except Exception as e:
        logger.error("Health check failed: %s", e)
        return HealthResponse(
            status="error",
            database="error",
            version=API_VERSION,
            uptime_seconds=uptime_seconds,
            error_message=str(e),
        )


# Root redirect to docs
@app.get("/", include_in_schema=False)
async def root():
    """Redirect root to API documentation."""
    from fastapi.responses import RedirectResponse

    return RedirectResponse(url="/api/docs")


if __name__ == "__main__":
    import uvicorn

    _config = get_config(CONFIG_PATH)
    setup_logging(_config)
    uvicorn.run(app, host=_config.api.host, port=_config.api.port)
