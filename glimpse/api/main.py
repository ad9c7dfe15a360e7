import asyncio
from contextlib import asynccontextmanager, suppress
from functools import lru_cache
from typing import AsyncGenerator, Iterator, List, Optional

import sentry_sdk
from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse, Response
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.redis import RedisIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from glimpse import __version__
from glimpse.api.schemas import (
    DailyLikesRemaining,
    DetailsAccess,
    ErrorResponse,
    ReportMatchRequest,
    SendLikeRequest,
)
from glimpse.config import settings
from glimpse.jobs import cleanup_expired_matches_job, run_periodic
from glimpse.models import (
    LikeResult,
    LikeStats,
    Match,
    MatchReport,
    MatchStatus,
    MutualConnections,
    ReceivedLike,
    Recommendation,
    SentLike,
    UserMatch,
)
from glimpse.services import (
    LikeService,
    LoggingNotifier,
    LoggingReportSink,
    MatchService,
    NotificationDispatcher,
    RecommendationService,
    SqlMembershipDirectory,
)
from glimpse.utils.database import Database, SessionFactory, init_database
from glimpse.utils.errors import GlimpseError, ValidationError
from glimpse.utils.logging import bind_request_context, clear_request_context, configure_logging, get_logger

logger = get_logger(__name__)

# Initialize Sentry if DSN is provided
if settings.SENTRY_DSN:
    logger.info("Initializing Sentry...")
    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            traces_sample_rate=1.0 if settings.ENVIRONMENT == "development" else 0.1,
            profiles_sample_rate=1.0 if settings.ENVIRONMENT == "development" else 0.1,
            integrations=[
                FastApiIntegration(transaction_style="url"),
                SqlalchemyIntegration(),
                RedisIntegration(),
                AsyncioIntegration(),
            ],
        )
        logger.info("Sentry initialized")
    except Exception as e:
        logger.error("Failed to initialize Sentry", error=str(e))


class ServiceContainer:
    """Wires the like, match and discovery services around one session factory."""

    def __init__(self, session_factory: SessionFactory) -> None:
        config = settings.matching_config()
        membership = SqlMembershipDirectory()
        dispatcher = NotificationDispatcher(LoggingNotifier())

        self.match_service = MatchService(
            session_factory,
            config,
            dispatcher,
            membership,
            report_sink=LoggingReportSink(),
        )
        self.like_service = LikeService(session_factory, config, dispatcher, membership, self.match_service)
        self.recommendation_service = RecommendationService(session_factory, config, membership)


@lru_cache
def get_container() -> ServiceContainer:
    """Build the service container once per process."""
    return ServiceContainer(Database.get_session_factory())


def current_user_id(x_user_id: Optional[str] = Header(default=None)) -> Iterator[str]:
    """Caller identity as established by the upstream auth gateway."""
    if not x_user_id:
        raise ValidationError("Missing X-User-Id header")
    bind_request_context(user_id=x_user_id)
    try:
        yield x_user_id
    finally:
        clear_request_context()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan."""
    # Startup
    configure_logging()
    logger.info("Starting Glimpse API...")

    try:
        init_database()
    except Exception as e:
        error_details = {}
        if hasattr(e, "details"):
            error_details = e.details
        logger.error("Failed to initialize database", error=str(e), details=error_details)
        raise

    container = get_container()
    cleanup_task = asyncio.create_task(
        run_periodic(
            lambda: cleanup_expired_matches_job(container.match_service),
            settings.MATCH_CLEANUP_INTERVAL_HOURS * 3600,
        )
    )

    yield

    # Shutdown
    logger.info("Shutting down Glimpse API...")
    cleanup_task.cancel()
    with suppress(asyncio.CancelledError):
        await cleanup_task


app = FastAPI(
    title=settings.APP_NAME,
    description="Likes, matches and discovery for group-scoped dating",
    version=__version__,
    lifespan=lifespan,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)


@app.exception_handler(GlimpseError)
async def glimpse_error_handler(request: Request, exc: GlimpseError) -> JSONResponse:
    """Render domain errors in the common error envelope."""
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, code=exc.code, error=exc.message)
    else:
        logger.info("Request rejected", path=request.url.path, code=exc.code)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(
        content={
            "status": "ok",
            "app": settings.APP_NAME,
            "environment": settings.ENVIRONMENT,
        }
    )


# --- Likes ---


@app.post("/groups/{group_id}/likes", status_code=201, response_model=LikeResult)
def send_like(
    group_id: str,
    body: SendLikeRequest,
    user_id: str = Depends(current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> LikeResult:
    return container.like_service.send_like(user_id, body.to_user_id, group_id)


@app.delete("/groups/{group_id}/likes/{to_user_id}", status_code=204)
def unlike_user(
    group_id: str,
    to_user_id: str,
    user_id: str = Depends(current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Response:
    container.like_service.unlike_user(user_id, to_user_id, group_id)
    return Response(status_code=204)


@app.get("/likes/stats", response_model=LikeStats)
def like_stats(
    user_id: str = Depends(current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> LikeStats:
    return container.like_service.get_like_stats(user_id)


@app.get("/likes/sent", response_model=List[SentLike])
def sent_likes(
    group_id: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> List[SentLike]:
    return container.like_service.get_sent_likes(user_id, group_id, page, limit)


@app.get("/likes/received", response_model=List[ReceivedLike])
def who_likes_you(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> List[ReceivedLike]:
    return container.like_service.get_who_likes_you(user_id, page, limit)


@app.get("/likes/remaining", response_model=DailyLikesRemaining)
def daily_likes_remaining(
    user_id: str = Depends(current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> DailyLikesRemaining:
    remaining = container.like_service.get_daily_likes_remaining(user_id)
    return DailyLikesRemaining(remaining=remaining, unlimited=remaining is None)


# --- Discovery ---


@app.get("/groups/{group_id}/recommendations", response_model=List[Recommendation])
def recommendations(
    group_id: str,
    count: int = Query(default=10, ge=1, le=50),
    user_id: str = Depends(current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> List[Recommendation]:
    return container.recommendation_service.recommend(user_id, group_id, count)


# --- Matches ---


@app.get("/matches", response_model=List[UserMatch])
def user_matches(
    status: MatchStatus = Query(default=MatchStatus.ACTIVE),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> List[UserMatch]:
    return container.match_service.get_user_matches(user_id, status, page, limit)


@app.get("/matches/history", response_model=List[UserMatch])
def matching_history(
    group_id: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> List[UserMatch]:
    return container.match_service.get_matching_history(user_id, page, limit, group_id)


@app.get("/matches/{match_id}", response_model=UserMatch)
def get_match(
    match_id: str,
    user_id: str = Depends(current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> UserMatch:
    return container.match_service.get_match(match_id, user_id)


@app.delete("/matches/{match_id}", response_model=Match)
def delete_match(
    match_id: str,
    user_id: str = Depends(current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Match:
    return container.match_service.delete_match(match_id, user_id)


@app.post("/matches/{match_id}/extend", response_model=Match)
def extend_match(
    match_id: str,
    user_id: str = Depends(current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Match:
    return container.match_service.extend_match(match_id, user_id)


@app.post("/matches/{match_id}/report", status_code=201, response_model=MatchReport)
def report_match(
    match_id: str,
    body: ReportMatchRequest,
    user_id: str = Depends(current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> MatchReport:
    return container.match_service.report_match(match_id, user_id, body.reason, body.description)


@app.get("/matches/{match_id}/mutual", response_model=MutualConnections)
def mutual_connections(
    match_id: str,
    user_id: str = Depends(current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> MutualConnections:
    return container.match_service.get_mutual_connections(match_id, user_id)


# --- Users ---


@app.get("/users/{target_id}/details-access", response_model=DetailsAccess)
def details_access(
    target_id: str,
    user_id: str = Depends(current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> DetailsAccess:
    return DetailsAccess(
        user_id=target_id,
        can_view_details=container.match_service.can_view_user_details(user_id, target_id),
    )
