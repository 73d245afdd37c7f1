import logging

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models, transaction
from django.db.models import F
from django.utils import timezone

logger = logging.getLogger(__name__)


class Sequence(models.Model):
    """
    Compteur de numerotation par prefixe et par annee.

    L'increment se fait sous verrou de ligne: deux creations concurrentes
    ne peuvent pas obtenir le meme numero.
    """

    prefix = models.CharField(max_length=16)
    annee = models.PositiveIntegerField()
    valeur = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = "Séquence"
        unique_together = ("prefix", "annee")

    def __str__(self) -> str:
        return f"{self.prefix}-{self.annee}: {self.valeur}"


def prochain_numero(prefix: str, width: int = 4, annee: int = None) -> str:
    """Retourne le prochain numero <PREFIX>-<ANNEE>-<NNNN> pour un prefixe."""
    annee = annee or timezone.now().year
    with transaction.atomic():
        seq, _ = Sequence.objects.select_for_update().get_or_create(prefix=prefix, annee=annee)
        Sequence.objects.filter(pk=seq.pk).update(valeur=F("valeur") + 1)
        seq.refresh_from_db(fields=["valeur"])
    return f"{prefix}-{annee}-{seq.valeur:0{width}d}"


def json_list(**kwargs):
    return models.JSONField(default=list, blank=True, encoder=DjangoJSONEncoder, **kwargs)


def json_dict(**kwargs):
    return models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder, **kwargs)


class QhseModel(models.Model):
    """
    Base commune des entites QHSE.

    - numero unique attribue a la creation (NUMERO_PREFIX / NUMERO_WIDTH)
    - archivage logique (is_archived) a la place de la suppression
    - trace de l'auteur (created_by / updated_by)
    - calculer_champs_derives() rejoue les calculs a chaque sauvegarde
    """

    NUMERO_PREFIX = None
    NUMERO_WIDTH = 4

    numero = models.CharField(max_length=32, unique=True, editable=False)
    is_archived = models.BooleanField(default=False, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+"
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        libelle = getattr(self, "titre", None) or getattr(self, "nom", None) or ""
        return f"{self.numero} {libelle}".strip()

    def save(self, *args, **kwargs):
        if self._state.adding and not self.numero:
            self.numero = prochain_numero(self.NUMERO_PREFIX, self.NUMERO_WIDTH)
        self.calculer_champs_derives()
        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            kwargs["update_fields"] = set(update_fields) | set(self.champs_derives())
        super().save(*args, **kwargs)

    def calculer_champs_derives(self) -> None:
        """Point d'accroche: recalcul des champs calcules (scores, totaux...)."""
        return None

    def champs_derives(self):
        """Champs ecrits par calculer_champs_derives (pour les save partiels)."""
        return ()

    def archiver(self, utilisateur) -> None:
        self.is_archived = True
        self.updated_by = utilisateur
        self.save(update_fields=["is_archived", "updated_by", "updated_at"])
        logger.info(f"[archive] {self.__class__.__name__} {self.numero} archivé par {utilisateur}")

    def ajouter_historique(self, action: str, description: str = "", utilisateur=None, **details) -> None:
        """Ajoute une entree a l'historique (si le modele en possede un)."""
        entree = {
            "action": action,
            "description": description,
            "utilisateur": getattr(utilisateur, "pk", utilisateur),
            "date": timezone.now().isoformat(),
        }
        if details:
            entree["details"] = details
        self.historique = list(self.historique or []) + [entree]


def choix(*valeurs):
    """Choices Django dont le libelle est la valeur elle-meme."""
    return [(v, v) for v in valeurs]
