from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone

from .models import ControleQualite, MatierePremiere, NonConformite

MATIERE = {"nom": "Sucre blanc", "fournisseur_nom": "Sucrerie du Nord", "unite": "kg", "stock_minimum": 100}
NON_CONFORMITE = {
    "titre": "Etiquetage erroné",
    "description": "DLC illisible sur 200 unités",
    "type": "Produit",
    "categorie": "Majeure",
    "gravite": "Élevée",
}


def _jour(delta: int) -> str:
    return (timezone.localdate() + timedelta(days=delta)).isoformat()


# ----- Matieres premieres -----
@pytest.mark.django_db
def test_creation_matiere_premiere(client_manager):
    r = client_manager.post(reverse("matieres-premieres-list"), MATIERE, format="json")
    assert r.status_code == 201, r.content
    body = r.json()
    assert body["data"]["numero"].startswith("MP-")
    assert body["data"]["statut"] == "Actif"
    assert body["message"] == "Matière première créée avec succès"

    liste = client_manager.get(reverse("matieres-premieres-list"), {"fournisseur": "sucrerie"}).json()
    assert liste["total"] == 1
    assert "matieres_premieres" in liste


@pytest.mark.django_db
def test_lots_statistiques_et_alertes(client_manager):
    mp_id = client_manager.post(reverse("matieres-premieres-list"), MATIERE, format="json").json()["data"]["id"]
    url_lots = reverse("matieres-premieres-lots", args=[mp_id])

    r = client_manager.post(url_lots, {"numero_lot": "L1", "quantite": 60, "date_peremption": _jour(-1)},
                            format="json")
    assert r.status_code == 201, r.content
    client_manager.post(url_lots, {"numero_lot": "L2", "quantite": 20, "date_peremption": _jour(10)}, format="json")
    client_manager.post(url_lots, {"numero_lot": "L3", "quantite": 500, "statut": "Rejeté"}, format="json")

    doublon = client_manager.post(url_lots, {"numero_lot": "L1", "quantite": 1}, format="json")
    assert doublon.status_code == 400

    stats = client_manager.get(reverse("matieres-premieres-statistiques", args=[mp_id])).json()["data"]
    assert stats["total"] == 3
    assert stats["en_stock"] == 2
    assert stats["rejetes"] == 1
    assert stats["quantite_en_stock"] == 80
    assert stats["taux_conformite"] == 67

    alertes = client_manager.get(reverse("matieres-premieres-alertes", args=[mp_id])).json()
    types = sorted((a["type"], a["niveau"]) for a in alertes["alertes"])
    assert types == [("peremption", "attention"), ("peremption", "critique"), ("stock_bas", "critique")]


def test_statistiques_sans_lot():
    assert MatierePremiere(lots=[]).statistiques()["taux_conformite"] == 100


def test_alerte_certificat_expire():
    mp = MatierePremiere(certificats=[{"type": "Bio", "numero": "C-1", "date_expiration": _jour(-3)}])
    assert mp.alertes() == [{"type": "certificat_expire", "niveau": "critique", "message": "Certificat Bio (C-1) expiré"}]


# ----- Controles qualite -----
@pytest.mark.django_db
def test_controle_qualite_resultats_et_score(client_manager, manager):
    payload = {
        "titre": "Reception sucre",
        "type": "Réception matières premières",
        "date_planification": _jour(0),
        "criteres": [
            {"id": "humidite", "nom": "Humidité", "seuil_max": 0.1},
            {"id": "couleur", "nom": "Couleur", "seuil_min": 0, "seuil_max": 45},
            {"id": "granulo", "nom": "Granulométrie", "seuil_min": 0.4, "seuil_max": 0.8},
            {"id": "cendres", "nom": "Cendres", "seuil_max": 0.04},
        ],
    }
    r = client_manager.post(reverse("controles-qualite-list"), payload, format="json")
    assert r.status_code == 201, r.content
    controle = r.json()["data"]
    assert controle["numero"].startswith("CQ-")
    assert controle["controleur"]["id"] == manager.pk
    assert controle["evaluation"] == "En attente"

    url = reverse("controles-qualite-resultats", args=[controle["id"]])
    for critere, valeur in (("humidite", 0.05), ("couleur", 30), ("granulo", 0.5)):
        assert client_manager.post(url, {"critere": critere, "valeur": valeur}, format="json").status_code == 200
    r = client_manager.post(url, {"critere": "cendres", "valeur": 0.09}, format="json")
    data = r.json()["data"]
    assert data["score"] == 75
    assert data["evaluation"] == "Sous réserve"
    assert data["statut"] == "En cours"
    assert data["resultats"][-1]["conforme"] is False
    assert data["resultats"][-1]["ecart"] == pytest.approx(0.05)

    # nouvelle mesure du meme critere: remplace la precedente
    r = client_manager.post(url, {"critere": "cendres", "valeur": 0.02}, format="json")
    data = r.json()["data"]
    assert len(data["resultats"]) == 4
    assert data["score"] == 100
    assert data["evaluation"] == "Conforme"

    r = client_manager.post(url, {"critere": "inconnu", "valeur": 1}, format="json")
    assert r.status_code == 400


def test_evaluation_controle():
    assert ControleQualite.evaluer(95) == "Conforme"
    assert ControleQualite.evaluer(70) == "Sous réserve"
    assert ControleQualite.evaluer(69) == "Non conforme"


# ----- Non-conformites -----
@pytest.mark.django_db
def test_non_conformite_amdec_et_cout(client_manager, manager):
    payload = {
        **NON_CONFORMITE,
        "impact": {"production": {"cout": 1200}, "qualite": {"cout": 300}},
        "amdec": [{"mode_defaillance": "Imprimante encrassée", "gravite": 7, "occurrence": 4, "detection": 3}],
    }
    r = client_manager.post(reverse("non-conformites-list"), payload, format="json")
    assert r.status_code == 201, r.content
    data = r.json()["data"]
    assert data["numero"].startswith("NC-")
    assert data["detecteur"]["id"] == manager.pk
    assert data["statut"] == "Déclarée"
    assert data["cout_total"] == 1500
    assert data["amdec"][0]["criticite"] == 84
    assert r.json()["message"] == "Non-conformité créée avec succès"


@pytest.mark.django_db
def test_filtre_sur_valeur_numerique_json(client_manager):
    for cout in (1200, 450):
        payload = {**NON_CONFORMITE, "impact": {"production": {"cout": cout}}}
        client_manager.post(reverse("non-conformites-list"), payload, format="json")

    body = client_manager.get(reverse("non-conformites-list"), {"impact.production.cout": "1200"}).json()
    assert body["total"] == 1
    assert body["non_conformites"][0]["impact"]["production"]["cout"] == 1200
    assert client_manager.get(reverse("non-conformites-list"), {"impact.production.cout": "99"}).json()["total"] == 0


@pytest.mark.django_db
def test_non_conformite_fermeture_et_cloture(client_manager):
    nc_id = client_manager.post(reverse("non-conformites-list"), NON_CONFORMITE, format="json").json()["data"]["id"]

    r = client_manager.post(reverse("non-conformites-fermer", args=[nc_id]), {"commentaire": "Corrigé"},
                            format="json")
    assert r.status_code == 200, r.content
    data = r.json()["data"]
    assert data["statut"] == "Fermée"
    assert data["fermeture"]["efficacite_globale"] == "Efficace"
    assert data["delai_resolution"] is not None

    assert client_manager.post(reverse("non-conformites-fermer", args=[nc_id])).status_code == 400
    r = client_manager.post(reverse("non-conformites-cloturer", args=[nc_id]))
    assert r.json()["data"]["statut"] == "Clôturée"
    r = client_manager.post(reverse("non-conformites-cloturer", args=[nc_id]))
    assert r.status_code == 400
    assert r.json()["code"] == "TRANSITION_INVALIDE"


@pytest.mark.django_db
def test_ishikawa(client_manager):
    payload = {
        **NON_CONFORMITE,
        "causes": [
            {"type": "Technique", "description": "Tête d'impression usée"},
            {"type": "Humaine", "description": "Réglage non vérifié"},
        ],
        "diagramme_ishikawa": {"mesure": ["Pas de contrôle visuel"]},
        "analyse_cinq_pourquoi": [
            {"niveau": 1, "reponse": "Encre insuffisante"},
            {"niveau": 2, "reponse": "Maintenance non planifiée", "cause_racine": True},
        ],
    }
    nc_id = client_manager.post(reverse("non-conformites-list"), payload, format="json").json()["data"]["id"]
    data = client_manager.get(reverse("non-conformites-ishikawa", args=[nc_id])).json()["data"]
    assert data["branches"]["machine"] == ["Tête d'impression usée"]
    assert data["branches"]["main_oeuvre"] == ["Réglage non vérifié"]
    assert data["branches"]["mesure"] == ["Pas de contrôle visuel"]
    assert data["branches"]["milieu"] == []
    assert [c["reponse"] for c in data["causes_racines"]] == ["Maintenance non planifiée"]


@pytest.mark.django_db
def test_non_conformites_en_retard(client_manager):
    retard = {**NON_CONFORMITE, "actions_correctives": [{"description": "Remplacer la tête", "date_limite": _jour(-2)}]}
    a_jour = {**NON_CONFORMITE, "actions_correctives": [{"description": "Former", "date_limite": _jour(5)}]}
    soldee = {**NON_CONFORMITE, "actions_correctives": [
        {"description": "Nettoyer", "date_limite": _jour(-2), "statut": "Terminée"},
    ]}
    for payload in (retard, a_jour, soldee):
        client_manager.post(reverse("non-conformites-list"), payload, format="json")

    body = client_manager.get(reverse("non-conformites-en-retard")).json()
    assert body["total"] == 1
    assert body["non_conformites"][0]["est_en_retard"] is True
    assert NonConformite.objects.count() == 3


# ----- Decisions qualite -----
@pytest.mark.django_db
def test_decision_qualite_cycle(client_manager, manager):
    mp_id = client_manager.post(reverse("matieres-premieres-list"), MATIERE, format="json").json()["data"]["id"]
    payload = {
        "titre": "Lot L1 sucre humide",
        "type": "Mise en quarantaine",
        "contexte_type": "Matière première",
        "matiere_premiere": mp_id,
        "justification": "Humidité hors tolérance",
    }
    r = client_manager.post(reverse("decisions-qualite-list"), payload, format="json")
    assert r.status_code == 201, r.content
    decision = r.json()["data"]
    assert decision["numero"].startswith("DQ-")
    assert decision["statut"] == "En attente"
    assert decision["decisionnaire"]["id"] == manager.pk
    assert decision["matiere_premiere_numero"].startswith("MP-")

    url_appliquer = reverse("decisions-qualite-appliquer", args=[decision["id"]])
    assert client_manager.post(url_appliquer).status_code == 400

    r = client_manager.post(reverse("decisions-qualite-valider", args=[decision["id"]]), {"commentaire": "OK"},
                            format="json")
    data = r.json()["data"]
    assert data["statut"] == "Validée"
    assert data["validation"]["validateur"] == manager.pk
    assert data["validation"]["niveau"] == "Responsable Qualité"

    assert client_manager.post(reverse("decisions-qualite-rejeter", args=[decision["id"]])).status_code == 400
    r = client_manager.post(url_appliquer)
    assert r.json()["data"]["statut"] == "Appliquée"


@pytest.mark.django_db
def test_decision_sans_justification(client_manager):
    payload = {"titre": "X", "type": "Rejet", "contexte_type": "Processus", "justification": "  "}
    r = client_manager.post(reverse("decisions-qualite-list"), payload, format="json")
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "justification"


# ----- Tracabilite -----
@pytest.mark.django_db
def test_tracabilite_verification_liens_et_rappel(client_manager):
    r = client_manager.post(
        reverse("tracabilite-list"),
        {"type": "Produit fini", "reference": "CONF-FRAISE", "lot": "PF-0042"},
        format="json",
    )
    assert r.status_code == 201, r.content
    tr = r.json()["data"]
    assert tr["numero"].startswith("TR-")

    verification = client_manager.get(reverse("tracabilite-verification", args=[tr["id"]])).json()["data"]
    assert verification["complete"] is False
    assert verification["manques"] == [
        "Origine incomplète", "Aucun contrôle qualité", "Aucun document de traçabilité",
    ]

    r = client_manager.post(
        reverse("tracabilite-liens", args=[tr["id"]]),
        {"type": "Amont", "element_type": "Matière première", "element_id": "MP-2026-0001", "quantite": 12},
        format="json",
    )
    assert r.status_code == 201, r.content
    assert r.json()["data"]["liens"][0]["element_id"] == "MP-2026-0001"

    client_manager.patch(
        reverse("tracabilite-detail", args=[tr["id"]]),
        {
            "origine": {"type": "Production", "date_reception": _jour(-1)},
            "controles": [{"type": "Contrôle produit fini", "resultat": "Conforme"}],
            "documents": [{"nom": "Fiche lot"}],
        },
        format="json",
    )
    verification = client_manager.get(reverse("tracabilite-verification", args=[tr["id"]])).json()["data"]
    assert verification == {**verification, "complete": True, "manques": []}
    assert len(verification["chaine"]) == 2

    r = client_manager.post(reverse("tracabilite-rappel", args=[tr["id"]]), {"raison": "Corps étranger"},
                            format="json")
    assert r.status_code == 200, r.content
    data = r.json()["data"]
    assert data["statut"] == "Rappelé"
    assert data["rappels"][0]["raison"] == "Corps étranger"
    assert client_manager.post(reverse("tracabilite-rappel", args=[tr["id"]]), {"raison": "Bis"},
                               format="json").status_code == 400


@pytest.mark.django_db
def test_tracabilite_reference_requise(client_manager):
    r = client_manager.post(reverse("tracabilite-list"), {"type": "Produit fini"}, format="json")
    assert r.status_code == 400


# ----- Vues partagees et permissions -----
@pytest.mark.django_db
def test_routes_partagees(client_manager):
    assert client_manager.get(reverse("qualite-plans-controle-list")).json()["total"] == 0
    assert "echantillons" in client_manager.get(reverse("qualite-echantillons-list")).json()
    assert client_manager.get(reverse("qualite-analyses-list")).status_code == 200
    assert client_manager.get(reverse("qualite-conformites-list")).status_code == 200


@pytest.mark.django_db
def test_permissions_qualite(client_employe, client_manager, api_client):
    assert api_client.get(reverse("non-conformites-list")).status_code == 401
    assert client_employe.get(reverse("non-conformites-list")).status_code == 200
    assert client_employe.post(reverse("non-conformites-list"), NON_CONFORMITE, format="json").status_code == 403

    nc_id = client_manager.post(reverse("non-conformites-list"), NON_CONFORMITE, format="json").json()["data"]["id"]
    assert client_manager.delete(reverse("non-conformites-detail", args=[nc_id])).status_code == 403
