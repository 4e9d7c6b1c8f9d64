"""
Background tasks for the member dues ledger
"""
from app.core.celery import celery_app
from app.database.database import SessionLocal
from app.modules.members.service import DuesLedgerService
import logging

logger = logging.getLogger(__name__)


@celery_app.task(bind=True)
def mark_overdue_dues(self):
    """
    Periodic task: pasa a Vencida las cuotas pendientes con vencimiento pasado
    """
    db = SessionLocal()
    try:
        logger.info("Starting overdue dues sweep")
        updated = DuesLedgerService(db).mark_overdue()
        logger.info(f"Overdue dues sweep completed: {updated} entries updated")
        return {"status": "completed", "updated": updated}

    except Exception as e:
        logger.error(f"Overdue dues sweep failed: {str(e)}")
        raise self.retry(exc=e, countdown=300, max_retries=3)
    finally:
        db.close()
