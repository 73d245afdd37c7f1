import logging

from celery import shared_task
from django.utils import timezone

from .models import RefreshTokenRecord

logger = logging.getLogger(__name__)


@shared_task
def purger_refresh_tokens_expires() -> int:
    """Supprime les refresh tokens arrives a expiration."""
    deleted, _ = RefreshTokenRecord.objects.filter(expires_at__lte=timezone.now()).delete()
    if deleted:
        logger.info(f"[auth] {deleted} refresh token(s) expiré(s) supprimé(s)")
    return deleted
