from sqlalchemy import Column, Integer, String, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import TimestampMixin
import enum
import uuid


class MemberRole(enum.Enum):
    OWNER = "owner"
    MEMBER = "member"


class Foundation(Base, TimestampMixin):
    __tablename__ = "foundations"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    owner_id = Column(String, nullable=False, index=True)

    # Relationships
    members = relationship("FoundationMember", back_populates="foundation", cascade="all, delete-orphan")
    accounts = relationship("Account", back_populates="foundation", cascade="all, delete-orphan")


class FoundationMember(Base, TimestampMixin):
    __tablename__ = "foundation_members"
    __table_args__ = (UniqueConstraint('foundation_id', 'user_id', name='_foundation_member_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    foundation_id = Column(String, ForeignKey("foundations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    role = Column(Enum(MemberRole, values_callable=lambda e: [m.value for m in e], name="member_role"),
                  default=MemberRole.MEMBER, nullable=False)

    foundation = relationship("Foundation", back_populates="members")
