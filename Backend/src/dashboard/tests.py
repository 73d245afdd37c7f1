import pytest
from django.urls import reverse
from django.utils import timezone

from hse.models import EPI
from qhse.models import Incident, Risque
from qualite.models import ControleQualite, NonConformite


def _incident(user, gravite="Grave", **extra):
    return Incident.objects.create(
        created_by=user, titre="Chute de plain-pied", description="Sol glissant", type="Accident",
        gravite=gravite, date_incident=timezone.now(), **extra,
    )


@pytest.mark.django_db
def test_dashboard_vide(client_employe):
    r = client_employe.get(reverse("dashboard_global"))
    assert r.status_code == 200, r.content
    data = r.json()["data"]
    assert set(data) == {"laboratoire", "qualite", "hse", "genere_le"}
    assert data["laboratoire"]["echantillons"]["total"] == 0
    assert data["laboratoire"]["echantillons"]["taux_conformite"] == 0
    assert data["qualite"]["conformite"] == {"score": 0, "evolution": 0.0}
    assert data["hse"]["incidents"]["par_gravite"] == {}


@pytest.mark.django_db
def test_dashboard_qualite(client_manager, manager):
    controle = ControleQualite.objects.create(
        created_by=manager, titre="Reception farine", type="Réception matières premières",
        date_planification=timezone.localdate(), controleur=manager,
        criteres=[{"id": "humidite", "nom": "Humidité", "seuil_min": 0, "seuil_max": 15}],
    )
    controle.ajouter_resultat("humidite", 12, manager)
    ControleQualite.objects.create(
        created_by=manager, titre="Controle emballage", type="Contrôle produit fini",
        date_planification=timezone.localdate(), controleur=manager,
    )
    for gravite in ("Élevée", "Élevée", "Faible"):
        NonConformite.objects.create(
            created_by=manager, titre="Etiquetage", description="Date illisible", type="Produit",
            categorie="Mineure", gravite=gravite, detecteur=manager,
        )

    data = client_manager.get(reverse("dashboard_qualite")).json()["data"]
    assert data["controles_qualite"]["total"] == 2
    assert data["controles_qualite"]["planifies"] == 1
    assert data["controles_qualite"]["en_cours"] == 1
    assert data["controles_qualite"]["score_moyen"] == 100
    assert data["conformite"]["score"] == 100
    assert data["non_conformites"]["par_gravite"] == {"Élevée": 2, "Faible": 1}
    assert data["non_conformites"]["ouvertes"] == 3
    assert data["decisions_qualite"]["en_attente"] == 0


@pytest.mark.django_db
def test_dashboard_hse(client_manager, manager):
    _incident(manager)
    _incident(manager, gravite="Critique", statut="Fermé")
    _incident(manager).archiver(manager)
    Risque.objects.create(
        created_by=manager, titre="Chariot elevateur", description="Collision pieton", type="Sécurité",
        categorie="Risque physique", probabilite="Très élevée", gravite="Critique", activite="Logistique",
    )
    EPI.objects.create(
        created_by=manager, nom="Casque", type="Casque", categorie="Protection de la tête",
        quantite_totale=3, seuil_alerte=5,
    )

    data = client_manager.get(reverse("dashboard_hse")).json()["data"]
    assert data["incidents"]["total"] == 2
    assert data["incidents"]["par_gravite"] == {"Grave": 1, "Critique": 1}
    assert data["incidents"]["ouverts"] == 1
    assert data["risques"]["par_niveau"] == {"Critique": 1}
    assert data["risques"]["taux_critiques"] == 100
    assert data["risques"]["alerte"] is True
    assert data["epi"] == {"total": 1, "en_stock": 3, "seuil_alerte": 1}


@pytest.mark.django_db
def test_dashboard_laboratoire_permissions(client_employe, api_client):
    assert client_employe.get(reverse("dashboard_laboratoire")).status_code == 200
    assert api_client.get(reverse("dashboard_laboratoire")).status_code == 401
    assert api_client.get(reverse("dashboard_global")).status_code == 401


@pytest.mark.django_db
def test_activites_recentes(client_employe, manager):
    for _ in range(3):
        _incident(manager)
    EPI.objects.create(created_by=manager, nom="Gants", type="Gants", categorie="Protection des mains")

    url = reverse("activites_recentes")
    body = client_employe.get(url).json()
    assert body["total"] == 4
    types = {a["type"] for a in body["activities"]}
    assert types == {"incident", "epi"}
    incident = next(a for a in body["activities"] if a["type"] == "incident")
    assert incident["module"] == "hse"
    assert incident["action"] == "Création"
    assert incident["description"].endswith(" - Chute de plain-pied")
    assert incident["statut"] == "Déclaré"

    dates = [a["date"] for a in body["activities"]]
    assert dates == sorted(dates, reverse=True)

    assert client_employe.get(url, {"limit": 2}).json()["total"] == 2
    assert client_employe.get(url, {"limit": "abc"}).status_code == 400
