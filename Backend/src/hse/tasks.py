import logging

from celery import shared_task

from .models import EPI

logger = logging.getLogger(__name__)


@shared_task
def expirer_dotations_epi() -> int:
    """Passe en "Expiré" les dotations dont la duree de vie est depassee."""
    total = 0
    for epi in EPI.objects.filter(is_archived=False):
        expirees = epi.expirer_dotations()
        if expirees:
            epi.save(update_fields=["dotations", "historique", "updated_at"])
            total += expirees
    if total:
        logger.info(f"[hse] {total} dotation(s) EPI expirée(s)")
    return total
