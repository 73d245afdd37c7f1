import logging
from datetime import date, timedelta
from typing import Dict, Iterator, List, Optional

from django.apps import apps
from django.db.models import Avg
from django.utils import timezone
from rest_framework.exceptions import NotFound

from common.kpis import compter_par, taux
from common.serializers import ActionSerializer
from common.utils import as_date

from .models import Audit, Conformite, Formation, Incident, Risque

logger = logging.getLogger(__name__)

# (source, app, modele, champ JSON des actions)
SOURCES_ACTIONS = (
    ("audit", "qhse", "Audit", "actions_correctives"),
    ("incident", "qhse", "Incident", "actions_correctives"),
    ("non_conformite", "qualite", "NonConformite", "actions_correctives"),
)
STATUTS_ACTION_CLOS = {"Terminée", "Vérifiée"}


# ----- Actions correctives -----
def jours_retard(action: dict, aujourd_hui: Optional[date] = None) -> int:
    if action.get("statut") in STATUTS_ACTION_CLOS:
        return 0
    limite = as_date(action.get("date_limite"))
    if limite is None:
        return 0
    return max(0, ((aujourd_hui or timezone.localdate()) - limite).days)


def lister_actions(statut: Optional[str] = None) -> Iterator[dict]:
    """Toutes les actions correctives des entites actives, avec leur origine."""
    for source, app_label, model_name, champ in SOURCES_ACTIONS:
        model = apps.get_model(app_label, model_name)
        for obj in model.objects.filter(is_archived=False).only("id", "numero", "titre", champ):
            for action in getattr(obj, champ) or []:
                if statut and action.get("statut") != statut:
                    continue
                yield {
                    **action,
                    "source": source,
                    "source_id": obj.pk,
                    "source_numero": obj.numero,
                    "source_titre": obj.titre,
                    "jours_retard": jours_retard(action),
                }


def actions_en_retard() -> List[dict]:
    retards = [a for a in lister_actions() if a["jours_retard"] > 0]
    return sorted(retards, key=lambda a: a["jours_retard"], reverse=True)


def mettre_a_jour_action(incident: Incident, action_id: str, data: dict, utilisateur) -> dict:
    """Met a jour une action corrective d'un incident (fusion + revalidation)."""
    actions = list(incident.actions_correctives or [])
    for index, action in enumerate(actions):
        if action.get("id") != action_id:
            continue
        serializer = ActionSerializer(data={**action, **data, "id": action_id})
        serializer.is_valid(raise_exception=True)
        actions[index] = dict(serializer.validated_data)
        incident.actions_correctives = actions
        incident.updated_by = utilisateur
        incident.ajouter_historique(
            "Action corrective", f"Action {action_id} mise à jour", utilisateur, statut=actions[index].get("statut")
        )
        incident.save()
        logger.info(f"[actions] action {action_id} de {incident.numero} mise à jour par {utilisateur}")
        return actions[index]
    raise NotFound("Action corrective non trouvée")


# ----- Statistiques -----
def _actifs(model):
    return model.objects.filter(is_archived=False)


def statistiques_qhse() -> Dict[str, dict]:
    aujourd_hui = timezone.localdate()
    debut_mois = aujourd_hui.replace(day=1)
    audits, incidents, risques = _actifs(Audit), _actifs(Incident), _actifs(Risque)
    formations, conformites = _actifs(Formation), _actifs(Conformite)
    nb_conformites = conformites.count()
    retards = actions_en_retard()

    return {
        "audits": {
            "total": audits.count(),
            "par_statut": compter_par(audits, "statut"),
            "en_retard": audits.filter(statut="Planifié", date_planification__lt=aujourd_hui).count(),
            "score_moyen": audits.aggregate(v=Avg("score"))["v"],
        },
        "incidents": {
            "total": incidents.count(),
            "par_gravite": compter_par(incidents, "gravite"),
            "critiques": incidents.filter(gravite="Critique").count(),
            "ce_mois": incidents.filter(date_incident__date__gte=debut_mois).count(),
            "ouverts": incidents.exclude(statut__in=["Résolu", "Fermé", "Clôturé"]).count(),
        },
        "risques": {
            "total": risques.count(),
            "par_niveau": compter_par(risques, "niveau_risque"),
            "critiques": risques.filter(niveau_risque="Critique").count(),
        },
        "formations": {
            "total": formations.count(),
            "par_statut": compter_par(formations, "statut"),
            "expirantes": formations_expirantes(30).count(),
        },
        "conformites": {
            "total": nb_conformites,
            "par_statut": compter_par(conformites, "statut_conformite"),
            "taux_conformite": taux(conformites.filter(statut_conformite="Conforme").count(), nb_conformites),
            "score_moyen": conformites.aggregate(v=Avg("score_conformite"))["v"],
        },
        "actions": {
            "total": sum(1 for _ in lister_actions()),
            "en_retard": len(retards),
        },
    }


def statistiques_etendues() -> Dict[str, dict]:
    """Repartitions detaillees par entite (type, domaine, statut...)."""
    return {
        "audits": {
            "par_type": compter_par(_actifs(Audit), "type"),
            "par_domaine": compter_par(_actifs(Audit), "domaine"),
            "par_statut": compter_par(_actifs(Audit), "statut"),
            "par_conclusion": compter_par(_actifs(Audit).exclude(conclusion=""), "conclusion"),
        },
        "incidents": {
            "par_type": compter_par(_actifs(Incident), "type"),
            "par_categorie": compter_par(_actifs(Incident), "categorie"),
            "par_gravite": compter_par(_actifs(Incident), "gravite"),
            "par_statut": compter_par(_actifs(Incident), "statut"),
        },
        "risques": {
            "par_type": compter_par(_actifs(Risque), "type"),
            "par_categorie": compter_par(_actifs(Risque), "categorie"),
            "par_niveau": compter_par(_actifs(Risque), "niveau_risque"),
            "par_statut": compter_par(_actifs(Risque), "statut"),
        },
        "formations": {
            "par_type": compter_par(_actifs(Formation), "type"),
            "par_categorie": compter_par(_actifs(Formation), "categorie"),
            "par_statut": compter_par(_actifs(Formation), "statut"),
        },
        "conformites": {
            "par_type": compter_par(_actifs(Conformite), "type"),
            "par_domaine": compter_par(_actifs(Conformite), "domaine"),
            "par_niveau": compter_par(_actifs(Conformite), "niveau_conformite"),
        },
    }


def statistiques_periode(debut: date, fin: date) -> Dict[str, object]:
    """Creations par entite entre deux dates (bornes incluses)."""
    fenetre = {"created_at__date__gte": debut, "created_at__date__lte": fin}
    incidents = _actifs(Incident).filter(date_incident__date__gte=debut, date_incident__date__lte=fin)
    return {
        "debut": debut.isoformat(),
        "fin": fin.isoformat(),
        "audits": _actifs(Audit).filter(**fenetre).count(),
        "incidents": incidents.count(),
        "incidents_par_gravite": compter_par(incidents, "gravite"),
        "risques": _actifs(Risque).filter(**fenetre).count(),
        "formations": _actifs(Formation).filter(**fenetre).count(),
        "conformites": _actifs(Conformite).filter(**fenetre).count(),
    }


def formations_expirantes(jours: int):
    aujourd_hui = timezone.localdate()
    return _actifs(Formation).filter(
        date_expiration__gte=aujourd_hui, date_expiration__lte=aujourd_hui + timedelta(days=jours)
    )


def conformites_expirantes(jours: int):
    return _actifs(Conformite).filter(
        prochaine_evaluation__lte=timezone.localdate() + timedelta(days=jours)
    )
