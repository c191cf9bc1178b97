"""
LaunchCheck API

Main FastAPI application: analyze an app from GitHub or a ZIP upload, return a
plain-English launch verdict, and re-check it later for alert-worthy changes.
"""

import logging
from datetime import datetime

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

import config
from database import engine, init_db
from logging_config import setup_logging
from models import AlertRecord, AppAnalysis
from routers import alerts as alerts_router
from routers.alerts import alert_from_record
from services.github import GitHubContentClient
from services.users import get_caller_id, get_or_create_user, get_owned_analysis

from launchcheck import schemas
from launchcheck.alerts import COOLDOWN, evaluate_alerts_safely
from launchcheck.analyzers import analyze_patterns, detect_stack
from launchcheck.content_fetcher import (
    AppContent,
    fetch_github_repo,
    fetch_with_timeout,
    parse_repo_url,
    parse_zip_upload,
)
from launchcheck.errors import (
    ContentFetchError,
    FetchTimeoutError,
    InvalidSourceError,
    LaunchCheckError,
    RateLimitedError,
    RepositoryNotFoundError,
    UploadTooLargeError,
)
from launchcheck.judgment import generate_launch_verdict
from launchcheck.schemas import (
    AnalysisDetailResponse,
    AnalysisStatus,
    AnalyzeRequest,
    AnalyzeResponse,
    BehaviorProfile,
    RecheckResponse,
    StackProfile,
)

setup_logging()
logger = logging.getLogger(__name__)

# Create tables and seed the catalog
init_db()

app = FastAPI(
    title="LaunchCheck API",
    description="Tells non-technical founders whether their app is safe to share, in plain English",
    version="1.0.0",
)

# Rate limiting
limiter = Limiter(key_func=get_remote_address, enabled=config.RATE_LIMIT_ENABLED)
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests. Please try again later."},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["Content-Type", "X-User-Id"],
)

app.include_router(alerts_router.router)

ANALYSIS_FAILED_DETAIL = "Something went wrong while analyzing your app. Please try again."


# =============================================================================
# HELPERS
# =============================================================================

def fetch_error_to_http(error: LaunchCheckError) -> HTTPException:
    """Map a fetch error to the response the user should see."""
    if isinstance(error, InvalidSourceError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, RepositoryNotFoundError):
        return HTTPException(
            status_code=404,
            detail="Repository not found. Check the URL and make sure the repository is public.",
        )
    if isinstance(error, RateLimitedError):
        headers = {"Retry-After": str(error.retry_after)} if error.retry_after else None
        return HTTPException(
            status_code=429,
            detail="GitHub is busy right now. Please try again in a few minutes.",
            headers=headers,
        )
    if isinstance(error, FetchTimeoutError):
        return HTTPException(status_code=504, detail="Fetching your app took too long. Please try again.")
    return HTTPException(status_code=502, detail="We couldn't read your app's files. Please try again.")


async def fetch_github_content(repo_url: str) -> AppContent:
    """Fetch a bounded snapshot of a GitHub repository under the configured deadline."""
    async with GitHubContentClient() as client:
        return await fetch_with_timeout(
            fetch_github_repo(repo_url, client, max_files=config.MAX_FILES),
            config.FETCH_TIMEOUT_SECONDS,
        )


async def fetch_or_raise(repo_url: str) -> AppContent:
    try:
        return await fetch_github_content(repo_url)
    except (InvalidSourceError, ContentFetchError) as e:
        logger.warning(f"Fetch failed for {repo_url}: {type(e).__name__}: {e}")
        raise fetch_error_to_http(e) from e


def to_schema(
    record: AppAnalysis,
    stack: StackProfile | None = None,
    behavior: BehaviorProfile | None = None,
) -> schemas.AppAnalysis:
    """Build the core AppAnalysis model from a stored row (profiles override the row's JSON)."""
    if stack is None:
        stack = StackProfile.model_validate_json(record.stack_detection) if record.stack_detection else StackProfile()
    if behavior is None:
        behavior = (
            BehaviorProfile.model_validate_json(record.behavior_profile)
            if record.behavior_profile
            else BehaviorProfile()
        )
    return schemas.AppAnalysis(
        id=str(record.id),
        user_id=record.user.external_id,
        github_url=record.github_url,
        uploaded_file_name=record.uploaded_file_name,
        status=record.status,
        stack_detection=stack,
        behavior_profile=behavior,
        launch_confidence_score=record.launch_confidence_score or 0,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def judge(record: AppAnalysis, content: AppContent) -> tuple[StackProfile, BehaviorProfile, schemas.LaunchVerdict]:
    """Detect, analyze and judge one snapshot for a stored analysis."""
    stack = detect_stack(content.files, content.manifest, content.requirements)
    behavior = analyze_patterns(content.files, content.manifest, stack, content.requirements)
    verdict = generate_launch_verdict(to_schema(record, stack, behavior))
    return stack, behavior, verdict


def save_profiles(
    record: AppAnalysis,
    stack: StackProfile,
    behavior: BehaviorProfile,
    verdict: schemas.LaunchVerdict,
) -> None:
    record.stack_detection = stack.model_dump_json()
    record.behavior_profile = behavior.model_dump_json()
    record.launch_confidence_score = verdict.confidence_score
    record.status = AnalysisStatus.COMPLETED.value
    record.updated_at = datetime.utcnow()


def create_and_judge(
    session: Session,
    caller_id: str,
    content: AppContent,
    github_url: str | None = None,
    uploaded_file_name: str | None = None,
) -> AnalyzeResponse:
    """Persist a new analysis, judge it, and store the result (or mark it failed)."""
    user = get_or_create_user(session, caller_id)
    record = AppAnalysis(
        user_id=user.id,
        github_url=github_url,
        uploaded_file_name=uploaded_file_name,
        status=AnalysisStatus.PENDING.value,
    )
    session.add(record)
    session.commit()
    session.refresh(record)

    try:
        stack, behavior, verdict = judge(record, content)
    except Exception:
        logger.exception(f"Analysis {record.id} failed for source {content.source}")
        record.status = AnalysisStatus.FAILED.value
        session.commit()
        raise HTTPException(status_code=500, detail=ANALYSIS_FAILED_DETAIL)

    save_profiles(record, stack, behavior, verdict)
    session.commit()

    logger.info(
        f"Analysis {record.id} completed: {verdict.status.value} "
        f"(score={verdict.confidence_score}, files={len(content.files)})"
    )
    return AnalyzeResponse(
        analysis_id=str(record.id),
        status=AnalysisStatus.COMPLETED,
        verdict=verdict,
    )


def load_recent_alerts(session: Session, analysis_pk: int, user_pk: int, now: datetime) -> list[schemas.Alert]:
    """Alerts inside the cooldown window for one analysis. Unreadable rows are skipped."""
    history = (
        session.query(AlertRecord)
        .filter(
            AlertRecord.analysis_id == analysis_pk,
            AlertRecord.user_id == user_pk,
            AlertRecord.created_at > now - COOLDOWN,
        )
        .all()
    )

    recent = []
    for row in history:
        try:
            recent.append(alert_from_record(row))
        except ValueError as e:
            logger.warning(f"Skipping unreadable alert {row.id} for analysis {analysis_pk}: {e}")
    return recent


def raise_alerts(
    session: Session,
    record: AppAnalysis,
    caller_id: str,
    behavior: BehaviorProfile,
    previous_behavior: BehaviorProfile | None,
) -> list[schemas.Alert]:
    """
    Evaluate and store alerts for a re-check whose profiles are already saved.

    Best-effort: any failure is logged and yields no alerts.
    """
    analysis_pk, user_pk = record.id, record.user_id
    now = datetime.utcnow()

    try:
        recent = load_recent_alerts(session, analysis_pk, user_pk, now)
    except Exception:
        logger.exception(f"Could not load alert history for analysis {analysis_pk}; continuing without it")
        session.rollback()
        recent = []

    new_alerts = evaluate_alerts_safely(
        analysis_id=str(analysis_pk),
        user_id=caller_id,
        new_profile=behavior,
        previous_profile=previous_behavior,
        recent_alerts=recent,
        now=now,
    )
    if not new_alerts:
        return []

    try:
        alert_records = [
            AlertRecord(
                user_id=user_pk,
                analysis_id=analysis_pk,
                category=alert.category.value,
                severity=alert.severity.value,
                title=alert.title,
                body=alert.body,
                what_changed=alert.what_changed,
                next_step=alert.next_step,
                created_at=now,
            )
            for alert in new_alerts
        ]
        session.add_all(alert_records)
        session.commit()
        return [alert_from_record(r) for r in alert_records]
    except Exception:
        logger.exception(f"Could not save alerts for analysis {analysis_pk}; returning the verdict without them")
        session.rollback()
        return []


# =============================================================================
# API ENDPOINTS
# =============================================================================

@app.get("/")
def read_root():
    """Health check endpoint."""
    return {"status": "ok", "version": "1.0.0", "message": "LaunchCheck API"}


@app.post("/analyze", response_model=AnalyzeResponse, status_code=201)
@limiter.limit("10/minute")
async def analyze_repo(request: Request, body: AnalyzeRequest, caller_id: str = Depends(get_caller_id)):
    """
    Analyze a GitHub repository.

    Fetches a bounded snapshot, detects stack and behavior, and returns the
    launch verdict. The profiles are stored for later re-checks.
    """
    # Validate before any network call
    try:
        owner, repo, _ = parse_repo_url(body.repo_url)
    except InvalidSourceError as e:
        raise HTTPException(status_code=400, detail=str(e))

    content = await fetch_or_raise(body.repo_url)

    with Session(engine) as session:
        return create_and_judge(
            session,
            caller_id,
            content,
            github_url=f"https://github.com/{owner}/{repo}",
        )


@app.post("/analyze/upload", response_model=AnalyzeResponse, status_code=201)
@limiter.limit("10/minute")
async def analyze_upload(
    request: Request,
    file: UploadFile = File(...),
    caller_id: str = Depends(get_caller_id),
):
    """Analyze an app uploaded as a ZIP archive."""
    filename = file.filename or "upload.zip"
    if not filename.lower().endswith(".zip"):
        raise HTTPException(status_code=400, detail="Please upload a .zip file.")

    # Read one byte past the ceiling so an oversized upload is detected without reading it all
    data = await file.read(config.MAX_UPLOAD_SIZE + 1)
    try:
        content = parse_zip_upload(
            data,
            filename,
            max_files=config.MAX_FILES,
            max_upload_size=config.MAX_UPLOAD_SIZE,
        )
    except UploadTooLargeError as e:
        raise HTTPException(status_code=413, detail=str(e))
    except InvalidSourceError as e:
        raise HTTPException(status_code=400, detail=str(e))

    with Session(engine) as session:
        return create_and_judge(session, caller_id, content, uploaded_file_name=filename)


@app.get("/analysis/{analysis_id}", response_model=AnalysisDetailResponse)
@limiter.limit("30/minute")
def get_analysis(request: Request, analysis_id: int, caller_id: str = Depends(get_caller_id)):
    """Get a stored analysis with a freshly generated verdict."""
    with Session(engine) as session:
        record = get_owned_analysis(session, analysis_id, caller_id)

        if record.status != AnalysisStatus.COMPLETED.value:
            raise HTTPException(status_code=400, detail="This analysis has not completed")

        analysis = to_schema(record)
        return AnalysisDetailResponse(analysis=analysis, verdict=generate_launch_verdict(analysis))


@app.post("/analysis/{analysis_id}/recheck", response_model=RecheckResponse)
@limiter.limit("10/minute")
async def recheck_analysis(request: Request, analysis_id: int, caller_id: str = Depends(get_caller_id)):
    """
    Re-fetch and re-judge a GitHub analysis.

    Compares the new behavior with the stored one and raises alerts for what
    changed. Alert failures never fail the re-check.
    """
    with Session(engine) as session:
        record = get_owned_analysis(session, analysis_id, caller_id)
        if not record.github_url:
            raise HTTPException(
                status_code=400,
                detail="Only GitHub analyses can be re-checked. Upload a new ZIP to analyze again.",
            )
        github_url = record.github_url

    content = await fetch_or_raise(github_url)

    with Session(engine) as session:
        record = get_owned_analysis(session, analysis_id, caller_id)
        previous_score = record.launch_confidence_score or 0
        previous_behavior = (
            BehaviorProfile.model_validate_json(record.behavior_profile)
            if record.behavior_profile
            else None
        )

        try:
            stack, behavior, verdict = judge(record, content)
        except Exception:
            logger.exception(f"Re-check of analysis {record.id} failed")
            raise HTTPException(status_code=500, detail=ANALYSIS_FAILED_DETAIL)

        save_profiles(record, stack, behavior, verdict)
        session.commit()

        new_alerts = raise_alerts(session, record, caller_id, behavior, previous_behavior)
        logger.info(
            f"Re-checked analysis {analysis_id}: score {previous_score} -> {verdict.confidence_score}, "
            f"{len(new_alerts)} new alert(s)"
        )

        return RecheckResponse(
            updated=True,
            verdict=verdict,
            new_alerts=new_alerts,
            alert_count=len(new_alerts),
            previous_confidence_score=previous_score,
            new_confidence_score=verdict.confidence_score,
        )
