"""
Indicateurs des tableaux de bord (laboratoire, qualite, HSE) et fil
des activites recentes, calcules a partir des enregistrements actifs.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Dict, List

from django.conf import settings
from django.db.models import Avg, F, Sum
from django.utils import timezone

from common.kpis import compter_par, evolution, taux
from hse.models import EPI, Hygiene, ProduitChimique
from laboratoire.models import Analyse, Echantillon, PlanControle
from qhse.models import Audit, Conformite, Formation, Incident, Risque
from qualite.models import ControleQualite, DecisionQualite, MatierePremiere, NonConformite, Tracabilite

# (type, module, modele, champ libelle, champ statut)
SOURCES_ACTIVITES = (
    ("echantillon", "laboratoire", Echantillon, "produit_nom", "statut"),
    ("analyse", "laboratoire", Analyse, "nom", "statut"),
    ("plan_controle", "laboratoire", PlanControle, "nom", "statut"),
    ("matiere_premiere", "qualite", MatierePremiere, "nom", "statut"),
    ("controle_qualite", "qualite", ControleQualite, "titre", "statut"),
    ("non_conformite", "qualite", NonConformite, "titre", "statut"),
    ("decision_qualite", "qualite", DecisionQualite, "titre", "statut"),
    ("tracabilite", "qualite", Tracabilite, "reference", "statut"),
    ("audit", "qhse", Audit, "titre", "statut"),
    ("incident", "hse", Incident, "titre", "statut"),
    ("risque", "hse", Risque, "titre", "statut"),
    ("formation", "hse", Formation, "titre", "statut"),
    ("conformite", "qhse", Conformite, "titre", "statut_conformite"),
    ("hygiene", "hse", Hygiene, "titre", "statut"),
    ("epi", "hse", EPI, "nom", "statut"),
    ("produit_chimique", "hse", ProduitChimique, "nom", "statut"),
)


def _actifs(model):
    return model.objects.filter(is_archived=False)


def _taux_critiques(risques) -> int:
    return taux(risques.filter(niveau_risque="Critique").count(), risques.count())


def tableau_laboratoire() -> Dict[str, dict]:
    echantillons = _actifs(Echantillon)
    analyses = _actifs(Analyse)
    plans = _actifs(PlanControle)
    nb_echantillons = echantillons.count()
    conformes = echantillons.filter(conformite="Conforme").count()

    return {
        "echantillons": {
            "total": nb_echantillons,
            "en_attente": echantillons.filter(statut__in=["Reçu", "En attente d'analyse"]).count(),
            "en_cours": echantillons.filter(statut="En cours d'analyse").count(),
            "termines": echantillons.filter(statut="Analysé").count(),
            "conformes": conformes,
            "non_conformes": echantillons.filter(conformite="Non conforme").count(),
            "taux_conformite": taux(conformes, nb_echantillons),
        },
        "analyses": {
            "total": analyses.count(),
            "planifiees": analyses.filter(statut="Planifiée").count(),
            "en_cours": analyses.filter(statut="En cours").count(),
            "terminees": analyses.filter(statut__in=["Terminée", "Validée"]).count(),
            "par_resultat": compter_par(analyses, "statut_resultat"),
        },
        "plans_controle": {
            "total": plans.count(),
            "actifs": plans.filter(statut="Actif").count(),
            "en_attente": plans.filter(statut__in=["Brouillon", "En révision"]).count(),
        },
    }


def _score_controles(controles) -> int:
    evalues = controles.exclude(score__isnull=True)
    return taux(evalues.filter(evaluation="Conforme").count(), evalues.count())


def tableau_qualite() -> Dict[str, dict]:
    maintenant = timezone.now()
    mois_dernier = maintenant - timedelta(days=30)
    matieres = _actifs(MatierePremiere)
    controles = _actifs(ControleQualite)
    non_conformites = _actifs(NonConformite)
    decisions = _actifs(DecisionQualite)
    audits = _actifs(Audit)

    score = _score_controles(controles)
    precedent = _score_controles(controles.filter(created_at__lt=mois_dernier))
    nb_ouvertes = non_conformites.exclude(statut__in=["Fermée", "Clôturée"]).count()

    return {
        "matieres_premieres": {
            "total": matieres.count(),
            "actives": matieres.filter(statut="Actif").count(),
            "par_type": compter_par(matieres, "type_matiere"),
        },
        "controles_qualite": {
            "total": controles.count(),
            "planifies": controles.filter(statut="Planifié").count(),
            "en_cours": controles.filter(statut="En cours").count(),
            "termines": controles.filter(statut__in=["Terminé", "Validé"]).count(),
            "score_moyen": controles.aggregate(v=Avg("score"))["v"],
        },
        "non_conformites": {
            "total": non_conformites.count(),
            "ouvertes": nb_ouvertes,
            "par_gravite": compter_par(non_conformites, "gravite"),
            "cout_total": non_conformites.aggregate(v=Sum("cout_total"))["v"] or 0,
        },
        "decisions_qualite": {
            "total": decisions.count(),
            "en_attente": decisions.filter(statut="En attente").count(),
            "validees": decisions.filter(statut__in=["Validée", "Appliquée"]).count(),
            "rejetees": decisions.filter(statut="Rejetée").count(),
        },
        "audits": {
            "total": audits.count(),
            "planifies": audits.filter(statut="Planifié").count(),
            "termines": audits.filter(statut="Terminé").count(),
        },
        "conformite": {
            "score": score,
            "evolution": evolution(score, precedent),
        },
    }


def tableau_hse() -> Dict[str, dict]:
    aujourd_hui = timezone.localdate()
    controles = _actifs(Hygiene)
    epis = _actifs(EPI)
    produits = _actifs(ProduitChimique)
    incidents = _actifs(Incident)
    risques = _actifs(Risque)
    formations = _actifs(Formation)
    taux_critiques = _taux_critiques(risques)

    return {
        "hygiene": {
            "total": controles.count(),
            "conformes": controles.filter(evaluation="Conforme").count(),
            "non_conformes": controles.filter(evaluation="Non conforme").count(),
            "en_attente": controles.filter(evaluation="En attente").count(),
        },
        "epi": {
            "total": epis.count(),
            "en_stock": epis.aggregate(v=Sum("quantite_disponible"))["v"] or 0,
            "seuil_alerte": epis.filter(quantite_disponible__lte=F("seuil_alerte")).count(),
        },
        "produits_chimiques": {
            "total": produits.count(),
            "alertes_stock": produits.filter(quantite_disponible__lte=F("seuil_alerte")).count(),
            "perimes": produits.filter(date_peremption__lte=aujourd_hui).count(),
        },
        "incidents": {
            "total": incidents.count(),
            "par_gravite": compter_par(incidents, "gravite"),
            "ouverts": incidents.exclude(statut__in=["Résolu", "Fermé", "Clôturé"]).count(),
        },
        "risques": {
            "total": risques.count(),
            "par_niveau": compter_par(risques, "niveau_risque"),
            "taux_critiques": taux_critiques,
            "alerte": taux_critiques > settings.QHSE_ALERTES["taux_risques_critiques"],
        },
        "formations": {
            "total": formations.count(),
            "par_statut": compter_par(formations, "statut"),
        },
    }


def tableau_global() -> Dict[str, dict]:
    return {
        "laboratoire": tableau_laboratoire(),
        "qualite": tableau_qualite(),
        "hse": tableau_hse(),
        "genere_le": timezone.now().isoformat(),
    }


def _activite(type_, module, obj, champ_libelle, champ_statut) -> dict:
    libelle = getattr(obj, champ_libelle, "") or ""
    return {
        "id": obj.pk,
        "type": type_,
        "module": module,
        "action": "Création",
        "description": f"{obj.numero} - {libelle}" if libelle else obj.numero,
        "date": obj.created_at,
        "statut": getattr(obj, champ_statut, None),
        "priorite": getattr(obj, "priorite", None),
    }


def activites_recentes(limite: int = 10) -> List[dict]:
    """Derniers enregistrements crees, toutes entites confondues (plus recent d'abord)."""
    activites = []
    for type_, module, model, champ_libelle, champ_statut in SOURCES_ACTIVITES:
        for obj in _actifs(model).order_by("-created_at", "-pk")[:limite]:
            activites.append(_activite(type_, module, obj, champ_libelle, champ_statut))
    activites.sort(key=lambda a: a["date"], reverse=True)
    return activites[:limite]
