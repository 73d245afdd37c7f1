from django.apps import AppConfig


class QhseConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "qhse"
    verbose_name = "QHSE (audits, incidents, risques...)"
