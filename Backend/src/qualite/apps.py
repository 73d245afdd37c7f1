from django.apps import AppConfig


class QualiteConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "qualite"
    verbose_name = "Qualité"
