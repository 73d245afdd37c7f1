from django.apps import AppConfig


class LaboratoireConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "laboratoire"
    verbose_name = "Laboratoire"
