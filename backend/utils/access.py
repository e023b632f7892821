"""
Ledger access checks.

Mirrors the row-level security policies of the hosted database: members may
read a foundation's books, owners may write them. Every operation receives
the foundation id and actor id explicitly.
"""
from sqlalchemy.orm import Session
from models.foundation import FoundationMember, MemberRole
from utils.errors import NotAuthorized


def _membership(db: Session, actor_id: str, foundation_id: str):
    if not actor_id or not foundation_id:
        return None
    return db.query(FoundationMember).filter(
        FoundationMember.foundation_id == foundation_id,
        FoundationMember.user_id == actor_id
    ).first()


def may_read_ledger(db: Session, actor_id: str, foundation_id: str) -> bool:
    return _membership(db, actor_id, foundation_id) is not None


def may_write_ledger(db: Session, actor_id: str, foundation_id: str) -> bool:
    membership = _membership(db, actor_id, foundation_id)
    return membership is not None and membership.role == MemberRole.OWNER


def require_ledger_read(db: Session, actor_id: str, foundation_id: str) -> None:
    if not may_read_ledger(db, actor_id, foundation_id):
        raise NotAuthorized(f"User {actor_id} may not read the ledger of foundation {foundation_id}")


def require_ledger_write(db: Session, actor_id: str, foundation_id: str) -> None:
    if not may_write_ledger(db, actor_id, foundation_id):
        raise NotAuthorized(f"User {actor_id} may not write to the ledger of foundation {foundation_id}")
