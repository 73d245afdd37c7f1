import pytest
from django.urls import reverse

from .controles import conformite_echantillon, evaluer_resultat
from .models import Echantillon

ECHANTILLON = {
    "numero_lot": "LOT-42",
    "produit_nom": "Jus d'orange",
    "type_echantillon": "Produit fini",
    "poids_net": 250,
}
ANALYSE_PH = {"nom": "pH", "type": "Physico-chimique", "categorie": "pH", "critere": "Entre", "seuil_min": 3,
              "seuil_max": 4}


@pytest.mark.parametrize(
    "valeur, critere, seuil_min, seuil_max, tolerance, attendu",
    [
        (8, "≤", None, 10, None, "Conforme"),
        (12, "≤", None, 10, None, "Non conforme"),
        (5, "≥", 5, None, None, "Conforme"),
        (7, "=", 7, None, None, "Conforme"),
        (104, "±", 100, None, None, "Conforme"),
        (106, "±", 100, None, None, "Non conforme"),
        (106, "±", 100, None, 10, "Conforme"),
        (3.5, "Entre", 3, 4, None, "Conforme"),
        (4.2, "Entre", 3, 4, None, "Non conforme"),
        (None, "Entre", 3, 4, None, "En attente"),
        (3, "≤", None, None, None, "En attente"),
    ],
)
def test_evaluer_resultat(valeur, critere, seuil_min, seuil_max, tolerance, attendu):
    assert evaluer_resultat(valeur, critere, seuil_min, seuil_max, tolerance) == attendu


def test_conformite_echantillon():
    assert conformite_echantillon(100) == "Conforme"
    assert conformite_echantillon(75) == "Partiellement conforme"
    assert conformite_echantillon(50) == "Non conforme"


@pytest.mark.django_db
def test_creation_echantillon_avec_codes(client_manager, manager):
    r = client_manager.post(reverse("echantillons-list"), ECHANTILLON, format="json")
    assert r.status_code == 201, r.content
    data = r.json()["data"]
    assert data["numero"].startswith("ECH-")
    assert data["code_barres"].startswith("ECH-")
    assert data["qr_code"].startswith("QR-")
    assert data["conformite"] == "En attente"
    assert data["responsable_prelevement"]["id"] == manager.pk
    assert r.json()["message"] == "Échantillon créé avec succès"


@pytest.mark.django_db
def test_analyses_resultats_et_conformite_echantillon(client_manager):
    echantillon_id = client_manager.post(reverse("echantillons-list"), ECHANTILLON, format="json").json()["data"]["id"]
    url_analyses = reverse("echantillons-analyses", args=[echantillon_id])

    r = client_manager.post(url_analyses, ANALYSE_PH, format="json")
    assert r.status_code == 201, r.content
    analyse = r.json()["data"]
    assert analyse["numero"].startswith("ANA-")
    assert analyse["echantillon"] == echantillon_id
    assert analyse["statut_resultat"] == "En attente"
    assert Echantillon.objects.get(pk=echantillon_id).statut == "En attente d'analyse"

    r = client_manager.post(reverse("analyses-resultats", args=[analyse["id"]]), {"valeur": 3.6}, format="json")
    assert r.status_code == 200, r.content
    assert r.json()["data"]["statut_resultat"] == "Conforme"
    assert r.json()["data"]["statut"] == "Terminée"

    echantillon = client_manager.get(reverse("echantillons-detail", args=[echantillon_id])).json()["data"]
    assert echantillon["score"] == 100
    assert echantillon["conformite"] == "Conforme"

    second = client_manager.post(url_analyses, {**ANALYSE_PH, "nom": "pH bis"}, format="json").json()["data"]
    client_manager.post(reverse("analyses-resultats", args=[second["id"]]), {"valeur": 5}, format="json")
    echantillon = client_manager.get(reverse("echantillons-detail", args=[echantillon_id])).json()["data"]
    assert echantillon["score"] == 50
    assert echantillon["conformite"] == "Non conforme"

    liste = client_manager.get(url_analyses).json()
    assert liste["total"] == 2


@pytest.mark.django_db
def test_incertitude_calculee(client_manager):
    echantillon_id = client_manager.post(reverse("echantillons-list"), ECHANTILLON, format="json").json()["data"]["id"]
    payload = {**ANALYSE_PH, "echantillon": echantillon_id,
               "donnees_brutes": [{"valeur": 2}, {"valeur": 4}, {"valeur": 4}, {"valeur": 4},
                                  {"valeur": 5}, {"valeur": 5}, {"valeur": 7}, {"valeur": 9}]}
    r = client_manager.post(reverse("analyses-list"), payload, format="json")
    assert r.status_code == 201, r.content
    assert r.json()["data"]["incertitude"] == 2.0


@pytest.mark.django_db
def test_valider_et_rejeter(client_manager):
    echantillon_id = client_manager.post(reverse("echantillons-list"), ECHANTILLON, format="json").json()["data"]["id"]
    analyse_id = client_manager.post(
        reverse("echantillons-analyses", args=[echantillon_id]), ANALYSE_PH, format="json"
    ).json()["data"]["id"]

    r = client_manager.post(reverse("analyses-valider", args=[analyse_id]))
    assert r.status_code == 400
    assert r.json()["code"] == "TRANSITION_INVALIDE"

    client_manager.post(reverse("analyses-resultats", args=[analyse_id]), {"valeur": 3.2}, format="json")
    r = client_manager.post(reverse("analyses-valider", args=[analyse_id]), {"commentaire": "RAS"}, format="json")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["statut"] == "Validée"
    assert data["validation"]["valide"] is True

    r = client_manager.post(reverse("analyses-rejeter", args=[analyse_id]))
    assert r.status_code == 400


@pytest.mark.django_db
def test_decision_qualite(client_manager, manager):
    echantillon_id = client_manager.post(reverse("echantillons-list"), ECHANTILLON, format="json").json()["data"]["id"]
    r = client_manager.post(
        reverse("echantillons-decision-qualite", args=[echantillon_id]),
        {"statut": "Rejeté", "commentaire": "Hors specification", "actions": [{"type": "Blocage"}]},
        format="json",
    )
    assert r.status_code == 200, r.content
    decision = r.json()["data"]["decision_qualite"]
    assert decision["statut"] == "Rejeté"
    assert decision["decideur"] == manager.pk
    assert decision["actions"][0]["type"] == "Blocage"

    r = client_manager.post(reverse("echantillons-decision-qualite", args=[echantillon_id]), {"statut": "Peut-être"},
                            format="json")
    assert r.status_code == 400


@pytest.mark.django_db
def test_plan_de_controle_cycle_de_vie(client_manager):
    payload = {
        "nom": "Controle reception agrumes",
        "type": "Matière première",
        "frequence": "Chaque lot",
        "points_controle": [
            {"nom": "Brix", "type": "Mesure", "seuil_min": 10, "seuil_max": 14},
            {"nom": "Aspect", "type": "Visuel", "obligatoire": False},
        ],
    }
    r = client_manager.post(reverse("plans-controle-list"), payload, format="json")
    assert r.status_code == 201, r.content
    plan = r.json()["data"]
    assert plan["numero"].startswith("PC-")
    assert plan["version"] == "1.0"
    assert plan["statut"] == "Brouillon"
    assert plan["nb_points_obligatoires"] == 1

    r = client_manager.post(reverse("plans-controle-approuver", args=[plan["id"]]))
    assert r.json()["data"]["statut"] == "Approuvé"
    r = client_manager.post(reverse("plans-controle-activer", args=[plan["id"]]))
    assert r.json()["data"]["statut"] == "Actif"
    assert client_manager.post(reverse("plans-controle-activer", args=[plan["id"]])).status_code == 400

    r = client_manager.post(reverse("plans-controle-nouvelle-version", args=[plan["id"]]), {"raison": "MAJ"},
                            format="json")
    assert r.json()["data"]["version"] == "1.1"
    assert r.json()["data"]["statut"] == "En révision"

    checklist = client_manager.get(reverse("plans-controle-checklist", args=[plan["id"]])).json()["data"]
    assert checklist["total"] == 2
    assert checklist["points"][0]["numero"] == 1
    assert checklist["points"][0]["seuil_min"] == 10
    assert checklist["points"][1]["conforme"] is None

    liste = client_manager.get(reverse("plans-controle-list")).json()
    assert liste["total"] == 1
    assert "plans" in liste


@pytest.mark.django_db
def test_stats_laboratoire(client_employe):
    r = client_employe.get(reverse("laboratoire_stats"))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["echantillons"]["taux_conformite"] == 0
    assert data["plans_controle"] == {"total": 0, "actifs": 0}


@pytest.mark.django_db
def test_employe_lecture_seule(client_employe):
    assert client_employe.get(reverse("echantillons-list")).status_code == 200
    assert client_employe.post(reverse("echantillons-list"), ECHANTILLON, format="json").status_code == 403
