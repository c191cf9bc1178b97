from fastapi import Header, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import AppAnalysis, User


def get_caller_id(x_user_id: str | None = Header(None)) -> str:
    """Caller identity, set upstream by the identity layer. This service never authenticates."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()


def get_or_create_user(session: Session, external_id: str) -> User:
    """Get existing user or create new one. Handles concurrent inserts."""
    user = session.query(User).filter(User.external_id == external_id).first()

    if not user:
        try:
            user = User(external_id=external_id)
            session.add(user)
            session.flush()
        except IntegrityError:
            # Another concurrent request created it - rollback and query again
            session.rollback()
            user = session.query(User).filter(User.external_id == external_id).first()
            if not user:
                raise

    return user


def get_owned_analysis(session: Session, analysis_id: int, external_id: str) -> AppAnalysis:
    """Load an analysis the caller owns: 404 if missing, 403 if someone else's."""
    analysis = session.query(AppAnalysis).filter(AppAnalysis.id == analysis_id).first()
    if not analysis:
        raise HTTPException(status_code=404, detail="Analysis not found")
    if analysis.user.external_id != external_id:
        raise HTTPException(status_code=403, detail="You don't have access to this analysis")
    return analysis
