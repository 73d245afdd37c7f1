from django.apps import AppConfig


class HseConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "hse"
    verbose_name = "HSE"
