from django.conf import settings
from django.db import models
from django.utils import timezone

from common.models import choix


class Notification(models.Model):
    """Notification adressee a un utilisateur (alerte generee ou message manuel)."""

    TYPES = choix("info", "success", "warning", "error")
    PRIORITES = choix("low", "medium", "high", "critical")

    type = models.CharField(max_length=8, choices=TYPES)
    titre = models.CharField(max_length=200)
    message = models.TextField()
    module = models.CharField(max_length=32, default="general", db_index=True)
    priorite = models.CharField(max_length=8, choices=PRIORITES, default="medium")
    action = models.CharField(max_length=200, blank=True, default="")
    lien = models.CharField(max_length=300, blank=True, default="")
    # identifie l'alerte d'origine pour ne pas la notifier deux fois
    cle = models.CharField(max_length=100, blank=True, default="", db_index=True)

    destinataire = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications"
    )
    lu = models.BooleanField(default=False, db_index=True)
    lu_le = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-pk"]

    def __str__(self) -> str:
        return f"[{self.type}] {self.titre}"

    def marquer_lue(self) -> None:
        if not self.lu:
            self.lu, self.lu_le = True, timezone.now()
            self.save(update_fields=["lu", "lu_le"])
