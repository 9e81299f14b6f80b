import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from models.log import Log

logger = logging.getLogger(__name__)

# Operational log entry, committed on its own after the business transaction.
# A failed insert is rolled back and logged; the caller still gets its result.
def write_log(db: Session, *, user_id, action, resource, status="SUCCESS", ip=None, meta=None) -> bool:
    entry = Log(user_id=user_id, action=action, resource=resource, status=status, ip=ip, meta=meta or {})
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to write log %s %s for user %s", action, resource, user_id)
        return False
    logger.debug("log %s %s %s user=%s", action, resource, status, user_id)
    return True
