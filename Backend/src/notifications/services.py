"""
Generation des notifications d'alerte a partir des donnees courantes:
EPI sous le seuil de stock, produits chimiques perimes, actions en retard.
"""
import logging
from typing import Iterator, List

from django.contrib.auth import get_user_model
from django.db.models import F
from django.utils import timezone

from hse.models import EPI, ProduitChimique
from qhse.services import actions_en_retard
from users.models import Role

from .models import Notification

logger = logging.getLogger(__name__)

ROLES_ALERTES = (Role.ADMIN, Role.MANAGER, Role.RESPONSABLE_QHSE)


def alertes_courantes() -> Iterator[dict]:
    for epi in EPI.objects.filter(is_archived=False, quantite_disponible__lte=F("seuil_alerte")):
        yield {
            "cle": f"epi-stock-{epi.pk}",
            "type": "warning",
            "priorite": "high" if epi.quantite_disponible <= 0 else "medium",
            "module": "hse",
            "titre": f"Stock EPI bas: {epi.nom}",
            "message": f"{epi.quantite_disponible} {epi.unite} disponible(s) pour un seuil de {epi.seuil_alerte}",
            "lien": f"/hse/epi/{epi.pk}",
        }

    perimes = ProduitChimique.objects.filter(is_archived=False, date_peremption__lte=timezone.localdate())
    for produit in perimes:
        yield {
            "cle": f"produit-perime-{produit.pk}",
            "type": "error",
            "priorite": "high",
            "module": "hse",
            "titre": f"Produit chimique périmé: {produit.nom}",
            "message": f"{produit.numero} périmé depuis le {produit.date_peremption:%d/%m/%Y}",
            "lien": f"/hse/produits-chimiques/{produit.pk}",
        }

    for action in actions_en_retard():
        yield {
            "cle": f"action-retard-{action['source']}-{action['source_id']}-{action.get('id')}",
            "type": "warning",
            "priorite": "critical" if action["jours_retard"] > 30 else "medium",
            "module": "qualite" if action["source"] == "non_conformite" else "qhse",
            "titre": f"Action corrective en retard ({action['source_numero']})",
            "message": f"{action.get('description', '')}: {action['jours_retard']} jour(s) de retard",
        }


def generer_pour(utilisateur) -> List[Notification]:
    """Cree les alertes manquantes pour un utilisateur (une seule non lue par alerte)."""
    deja = set(
        Notification.objects.filter(destinataire=utilisateur, lu=False).exclude(cle="").values_list("cle", flat=True)
    )
    nouvelles = [
        Notification(destinataire=utilisateur, **alerte)
        for alerte in alertes_courantes()
        if alerte["cle"] not in deja
    ]
    Notification.objects.bulk_create(nouvelles)
    if nouvelles:
        logger.info(f"[notifications] {len(nouvelles)} alerte(s) générée(s) pour {utilisateur}")
    return nouvelles


def generer_pour_gestionnaires() -> int:
    destinataires = get_user_model().objects.filter(is_active=True, role__in=ROLES_ALERTES)
    return sum(len(generer_pour(u)) for u in destinataires)
