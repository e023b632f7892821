from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from models.foundation import Foundation, FoundationMember, MemberRole
from schemas.foundation import FoundationCreate
from crud.chart_of_accounts import initialize_default_accounts
from utils.errors import PersistenceFailure
import logging

logger = logging.getLogger(__name__)


def get_foundation(db: Session, foundation_id: str):
    return db.query(Foundation).filter(Foundation.id == foundation_id).first()


def add_member(db: Session, foundation_id: str, user_id: str, role: MemberRole = MemberRole.MEMBER):
    member = FoundationMember(foundation_id=foundation_id, user_id=user_id, role=role)
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


def on_foundation_created(db: Session, foundation: Foundation) -> int:
    """Creation hook: seeds the standard chart inside the creating transaction. Not run on updates."""
    return initialize_default_accounts(db, foundation.id, commit=False)


def create_foundation(db: Session, foundation: FoundationCreate, owner_id: str):
    """Creates the foundation, its owner membership and its chart of accounts atomically."""
    db_foundation = Foundation(name=foundation.name, owner_id=owner_id, created_by=owner_id)
    try:
        db.add(db_foundation)
        db.flush()
        db.add(FoundationMember(foundation_id=db_foundation.id, user_id=owner_id, role=MemberRole.OWNER))
        db.flush()
        accounts_created = on_foundation_created(db, db_foundation)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"Creating foundation '{foundation.name}' failed")
        raise PersistenceFailure(f"Could not create foundation '{foundation.name}': {e}", cause=e) from e

    db.refresh(db_foundation)
    logger.info(f"Foundation '{db_foundation.name}' ({db_foundation.id}) created by {owner_id}")
    return db_foundation, accounts_created
