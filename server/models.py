"""
SQLAlchemy models for the LaunchCheck API
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime

Base = declarative_base()


class User(Base):
    """A caller, identified by the external identity layer"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(String, nullable=False, unique=True)  # X-User-Id header
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    analyses = relationship("AppAnalysis", back_populates="user", cascade="all, delete-orphan")
    alerts = relationship("AlertRecord", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, external_id='{self.external_id}')>"


class AppAnalysis(Base):
    """Latest stack + behavior profile for one analyzed app"""
    __tablename__ = "app_analyses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # Source (exactly one is set)
    github_url = Column(String)
    uploaded_file_name = Column(String)

    status = Column(String, nullable=False, default="pending")  # "pending", "completed", "failed"

    stack_detection = Column(Text)  # JSON: StackProfile
    behavior_profile = Column(Text)  # JSON: BehaviorProfile
    launch_confidence_score = Column(Integer, default=0, nullable=False)  # 0-100

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="analyses")
    alerts = relationship("AlertRecord", back_populates="analysis", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<AppAnalysis(id={self.id}, status='{self.status}', score={self.launch_confidence_score})>"


class AlertRecord(Base):
    """One alert raised by a re-check"""
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    analysis_id = Column(Integer, ForeignKey("app_analyses.id", ondelete="CASCADE"), nullable=False, index=True)

    category = Column(String, nullable=False)  # AlertCategory value
    severity = Column(String, nullable=False)  # AlertSeverity value
    title = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    what_changed = Column(Text)
    next_step = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    read_at = Column(DateTime)  # Nullable until first read

    # Relationships
    user = relationship("User", back_populates="alerts")
    analysis = relationship("AppAnalysis", back_populates="alerts")

    def __repr__(self):
        return f"<AlertRecord(id={self.id}, category='{self.category}', analysis_id={self.analysis_id})>"


# =============================================================================
# READ-ONLY CATALOG (seeded from launchcheck.catalog)
# =============================================================================

class RiskScenarioTemplate(Base):
    __tablename__ = "risk_scenario_templates"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    plain_explanation = Column(Text, nullable=False)
    trigger_condition = Column(String, nullable=False)
    user_symptom = Column(Text, nullable=False)
    display_order = Column(Integer, nullable=False)


class PlatformTemplate(Base):
    __tablename__ = "platform_templates"

    platform_id = Column(String, primary_key=True)
    platform_name = Column(String, nullable=False)
    recommended_badge = Column(String, nullable=False)
    why_bullets = Column(Text, nullable=False)  # JSON: list of strings
    when_it_changes = Column(Text, nullable=False)
    confidence_note = Column(Text, nullable=False)


class NextStepTemplate(Base):
    __tablename__ = "next_step_templates"

    id = Column(String, primary_key=True)
    mode = Column(String, nullable=False)  # NextStepMode value
    headline = Column(String, nullable=False)
    explanation = Column(Text, nullable=False)
    cta_text = Column(String, nullable=False)
