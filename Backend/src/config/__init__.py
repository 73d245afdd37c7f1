# Charge l'application Celery au demarrage de Django pour que @shared_task s'y rattache
from .celery import app as celery_app

__all__ = ("celery_app",)
