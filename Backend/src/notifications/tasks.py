from celery import shared_task

from .services import generer_pour_gestionnaires


@shared_task
def generer_alertes() -> int:
    return generer_pour_gestionnaires()
