from datetime import date, timedelta

import pytest
from django.urls import reverse
from django.utils import timezone

from common.exceptions import TransitionInvalide

from .models import EPI, ProduitChimique
from .tasks import expirer_dotations_epi

EPI_GANTS = {
    "nom": "Gants nitrile",
    "type": "Gants",
    "categorie": "Protection des mains",
    "unite": "paire",
    "quantite_totale": 10,
    "seuil_alerte": 3,
    "duree_vie": 6,
}
PRODUIT = {"nom": "Javel 9,6%", "type": "Désinfectant", "etat": "Liquide", "quantite_totale": 20, "seuil_alerte": 5}


# ----- Hygiene -----
@pytest.mark.django_db
def test_hygiene_resultats_et_evaluation(client_manager, manager):
    payload = {
        "titre": "Inspection atelier conditionnement",
        "description": "Controle mensuel",
        "type": "Inspection",
        "zone": "Atelier B",
        "date_planification": timezone.localdate().isoformat(),
        "points_controle": [
            {"id": "sols", "nom": "Propreté des sols"},
            {"id": "temp", "nom": "Température chambre froide", "seuil_min": 0, "seuil_max": 4},
        ],
    }
    r = client_manager.post(reverse("hygiene-list"), payload, format="json")
    assert r.status_code == 201, r.content
    hygiene = r.json()["data"]
    assert hygiene["numero"].startswith("HYG-")
    assert hygiene["responsable"]["id"] == manager.pk
    assert hygiene["evaluation"] == "En attente"

    url = reverse("hygiene-resultats", args=[hygiene["id"]])
    r = client_manager.post(url, {"point": "sols", "statut": "Conforme"}, format="json")
    assert r.status_code == 200, r.content
    data = r.json()["data"]
    assert data["statut"] == "En cours"
    assert data["score"] == 100
    assert data["evaluation"] == "Conforme"

    r = client_manager.post(url, {"point": "temp", "valeur": 6.5, "unite": "°C"}, format="json")
    data = r.json()["data"]
    assert data["points_controle"][1]["statut"] == "Non conforme"
    assert data["score"] == 50
    assert data["evaluation"] == "Non conforme"
    assert data["statut"] == "Terminé"
    assert data["date_realisation"] is not None

    assert client_manager.post(url, {"point": "sols"}, format="json").status_code == 400
    assert client_manager.post(url, {"point": "inconnu", "statut": "Conforme"}, format="json").status_code == 400


# ----- EPI -----
@pytest.mark.django_db
def test_epi_dotation_stock_et_expiration(client_manager, employe):
    r = client_manager.post(reverse("epi-list"), EPI_GANTS, format="json")
    assert r.status_code == 201, r.content
    epi = r.json()["data"]
    assert epi["numero"].startswith("EPI-")
    assert epi["quantite_disponible"] == 10

    url = reverse("epi-dotation", args=[epi["id"]])
    r = client_manager.post(url, {"employe": employe.pk, "quantite": 8}, format="json")
    assert r.status_code == 200, r.content
    data = r.json()["data"]
    assert data["quantite_disponible"] == 2
    assert data["est_en_alerte_stock"] is True
    dotation = data["dotations"][0]
    assert dotation["statut"] == "Actif"
    expiration = date.fromisoformat(dotation["date_expiration"][:10])
    assert 180 <= (expiration - timezone.localdate()).days <= 185

    r = client_manager.post(url, {"employe": employe.pk, "quantite": 3}, format="json")
    assert r.status_code == 400
    assert r.json()["code"] == "STOCK_INSUFFISANT"
    assert EPI.objects.get(pk=epi["id"]).quantite_disponible == 2

    alertes = client_manager.get(reverse("epi-alertes-stock")).json()
    assert alertes["total"] == 1
    assert alertes["epis"][0]["id"] == epi["id"]


@pytest.mark.django_db
def test_epi_retour(client_manager, employe):
    epi_id = client_manager.post(reverse("epi-list"), EPI_GANTS, format="json").json()["data"]["id"]
    client_manager.post(reverse("epi-dotation", args=[epi_id]), {"employe": employe.pk, "quantite": 4}, format="json")
    url = reverse("epi-retour", args=[epi_id])

    r = client_manager.post(url, {"employe": employe.pk, "quantite": 1}, format="json")
    assert r.status_code == 200, r.content
    assert r.json()["data"]["quantite_disponible"] == 7

    r = client_manager.post(url, {"employe": employe.pk, "quantite": 1, "etat": "Perdu"}, format="json")
    data = r.json()["data"]
    assert data["quantite_totale"] == 9
    assert data["quantite_disponible"] == 7

    r = client_manager.post(url, {"employe": employe.pk, "quantite": 2}, format="json")
    data = r.json()["data"]
    assert data["dotations"][0]["statut"] == "Rendu"
    assert data["quantite_disponible"] == 9

    assert client_manager.post(url, {"employe": employe.pk, "quantite": 1}, format="json").status_code == 400


@pytest.mark.django_db
def test_tache_expiration_dotations(manager, employe):
    epi = EPI.objects.create(created_by=manager, **EPI_GANTS)
    epi.doter(employe, 2, manager)
    epi.dotations[0]["date_expiration"] = (timezone.now() - timedelta(days=1)).isoformat()
    epi.save()

    assert expirer_dotations_epi() == 1
    epi.refresh_from_db()
    assert epi.dotations[0]["statut"] == "Expiré"
    assert epi.quantite_disponible == 8
    assert epi.historique[-1]["action"] == "Expiration"
    assert expirer_dotations_epi() == 0


# ----- Produits chimiques -----
@pytest.mark.django_db
def test_produit_chimique_utilisation(client_manager):
    r = client_manager.post(reverse("produits-chimiques-list"), PRODUIT, format="json")
    assert r.status_code == 201, r.content
    produit = r.json()["data"]
    assert produit["numero"].startswith("CHIM-")

    url = reverse("produits-chimiques-utilisation", args=[produit["id"]])
    r = client_manager.post(url, {"quantite": 16, "zone": "Quai", "objectif": "Nettoyage"}, format="json")
    assert r.status_code == 200, r.content
    data = r.json()["data"]
    assert data["quantite_disponible"] == 4
    assert data["est_en_alerte_stock"] is True
    assert data["utilisations"][0]["unite"] == "L"

    r = client_manager.post(url, {"quantite": 5}, format="json")
    assert r.status_code == 400
    assert r.json()["code"] == "STOCK_INSUFFISANT"

    alertes = client_manager.get(reverse("produits-chimiques-alertes-stock")).json()
    assert alertes["total"] == 1
    assert "produits" in alertes


@pytest.mark.django_db
def test_produits_perimes(client_manager, manager):
    aujourd_hui = timezone.localdate()
    perime = ProduitChimique.objects.create(
        created_by=manager, nom="Solvant A", type="Solvant", etat="Liquide",
        date_reception=aujourd_hui - timedelta(days=400), duree_conservation=12,
    )
    ProduitChimique.objects.create(
        created_by=manager, nom="Acide B", type="Acide", etat="Liquide",
        date_peremption=aujourd_hui + timedelta(days=30),
    )
    ProduitChimique.objects.create(created_by=manager, nom="Base C", type="Base", etat="Solide")

    assert perime.date_peremption < aujourd_hui
    assert perime.est_perime
    body = client_manager.get(reverse("produits-chimiques-perimes")).json()
    assert body["total"] == 1
    assert body["produits"][0]["nom"] == "Solvant A"


@pytest.mark.django_db
def test_peremption_recalculee_a_chaque_sauvegarde(client_manager, manager):
    produit = ProduitChimique.objects.create(
        created_by=manager, nom="Ethanol", type="Solvant", etat="Liquide",
        date_reception=date(2025, 1, 1), duree_conservation=12,
    )
    assert produit.date_peremption == date(2026, 1, 1)

    produit.duree_conservation = 24
    produit.save()
    produit.refresh_from_db()
    assert produit.date_peremption == date(2027, 1, 1)

    r = client_manager.patch(
        reverse("produits-chimiques-detail", args=[produit.pk]), {"date_reception": "2025-06-15"}, format="json"
    )
    assert r.status_code == 200, r.content
    assert r.json()["data"]["date_peremption"] == "2027-06-15"


@pytest.mark.django_db
def test_produit_interdit(manager):
    produit = ProduitChimique.objects.create(
        created_by=manager, nom="Trichlo", type="Solvant", etat="Liquide", quantite_totale=5, statut="Interdit"
    )
    with pytest.raises(TransitionInvalide):
        produit.enregistrer_utilisation(1, manager)


# ----- Stats, dashboard, vues partagees -----
@pytest.mark.django_db
def test_stats_et_dashboard_hse(client_manager, client_employe):
    client_manager.post(reverse("epi-list"), {**EPI_GANTS, "quantite_totale": 2}, format="json")
    client_manager.post(reverse("produits-chimiques-list"), PRODUIT, format="json")

    data = client_employe.get(reverse("hse_stats")).json()["data"]
    assert data["periode"] == "mois"
    assert data["epi"] == {"total": 1, "alertes_stock": 1, "stock_disponible": 2}
    assert data["produits_chimiques"]["total"] == 1
    assert data["hygiene"]["taux_conformite"] == 0
    assert client_employe.get(reverse("hse_stats"), {"periode": "siecle"}).status_code == 400

    dashboard = client_employe.get(reverse("hse_dashboard")).json()["data"]
    assert dashboard["alertes"] == {"epi_stock_faible": 1, "produits_perimes": 0}
    assert dashboard["incidents_recents"] == []


@pytest.mark.django_db
def test_routes_partagees_hse(client_manager):
    assert "incidents" in client_manager.get(reverse("hse-incidents-list")).json()
    assert client_manager.get(reverse("hse-risques-list")).status_code == 200
    assert client_manager.get(reverse("hse-formations-list")).status_code == 200


@pytest.mark.django_db
def test_permissions_hse(client_employe, api_client):
    assert api_client.get(reverse("epi-list")).status_code == 401
    assert client_employe.get(reverse("epi-list")).status_code == 200
    assert client_employe.post(reverse("epi-list"), EPI_GANTS, format="json").status_code == 403
