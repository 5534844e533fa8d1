"""Access review models - certification campaigns and their decisions"""

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, UniqueConstraint, Index, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from saas_control.core.database import Base
from saas_control.models.directory import new_id, utcnow


class AccessReviewCampaign(Base):
    """Access certification cycle"""

    __tablename__ = "access_review_campaigns"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    status = Column(String(16), nullable=False, default="draft", index=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    decisions = relationship(
        "AccessReviewDecision",
        back_populates="campaign",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("status IN ('draft', 'active', 'completed')", name="chk_campaign_status"),
    )

    def __repr__(self):
        return f"<AccessReviewCampaign(id={self.id}, name='{self.name}', status='{self.status}')>"


class AccessReviewDecision(Base):
    """One (user, application) cell under review in a campaign"""

    __tablename__ = "access_review_decisions"

    id = Column(String(36), primary_key=True, default=new_id)
    campaign_id = Column(
        String(36), ForeignKey("access_review_campaigns.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(String(36), ForeignKey("directory_users.id", ondelete="CASCADE"), nullable=False)
    application_id = Column(String(36), ForeignKey("applications.id", ondelete="CASCADE"), nullable=False)
    decision = Column(String(16), nullable=False, default="pending")
    decided_by = Column(String(64), nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    rationale = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    campaign = relationship("AccessReviewCampaign", back_populates="decisions")
    user = relationship("DirectoryUser")
    application = relationship("Application")

    __table_args__ = (
        UniqueConstraint("campaign_id", "user_id", "application_id", name="uq_campaign_user_app"),
        Index("idx_decisions_campaign", "campaign_id"),
        CheckConstraint("decision IN ('pending', 'approved', 'revoked')", name="chk_decision"),
    )

    def __repr__(self):
        return f"<AccessReviewDecision(id={self.id}, campaign_id={self.campaign_id}, decision='{self.decision}')>"
