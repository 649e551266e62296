"""FORGE MES — NotificationService: hands completion notices to the Celery worker."""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from mes.models.manufacturing_order import ManufacturingOrder
from mes.models.user import User

logger = logging.getLogger(__name__)


class NotificationService:

    @staticmethod
    async def notify_mo_completed(db: AsyncSession, mo: ManufacturingOrder) -> bool:
        """Queue the completion email to the MO's creator. Returns False when there is nobody to tell."""
        from mes.tasks.notification_tasks import send_mo_completed_email

        if mo.created_by is None:
            logger.info("%s has no creator, skipping completion notice", mo.reference)
            return False
        creator = await db.get(User, mo.created_by)
        if creator is None or not creator.email:
            logger.info("%s creator %s has no email, skipping completion notice", mo.reference, mo.created_by)
            return False

        send_mo_completed_email.delay(creator.email, mo.reference)
        logger.info("Queued completion notice for %s to %s", mo.reference, creator.email)
        return True
