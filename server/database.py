import json
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import config
from launchcheck.catalog import NEXT_STEP_TEMPLATES, PLATFORM_TEMPLATES, RISK_TEMPLATES
from models import Base, NextStepTemplate, PlatformTemplate, RiskScenarioTemplate

logger = logging.getLogger(__name__)

SQLALCHEMY_DATABASE_URL = config.DATABASE_URL

# Engine
connect_args = {"check_same_thread": False} if SQLALCHEMY_DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)

# SessionLocal
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def seed_catalog(db) -> None:
    """Upsert the reference catalog. Safe to run on every startup."""
    for template in RISK_TEMPLATES.values():
        db.merge(RiskScenarioTemplate(
            id=template.id,
            title=template.title,
            plain_explanation=template.plain_explanation,
            trigger_condition=template.trigger_condition,
            user_symptom=template.user_symptom,
            display_order=template.order,
        ))

    for template in PLATFORM_TEMPLATES.values():
        db.merge(PlatformTemplate(
            platform_id=template.platform_id,
            platform_name=template.platform_name,
            recommended_badge=template.recommended_badge,
            why_bullets=json.dumps(list(template.why_bullets)),
            when_it_changes=template.when_it_changes,
            confidence_note=template.confidence_note,
        ))

    for template in NEXT_STEP_TEMPLATES.values():
        db.merge(NextStepTemplate(
            id=template.id,
            mode=template.mode.value,
            headline=template.headline,
            explanation=template.explanation,
            cta_text=template.cta_text,
        ))

    db.commit()


def init_db():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_catalog(db)
    finally:
        db.close()
    logger.info("Database initialized")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
