import re
from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone

from common.models import prochain_numero

from . import scoring
from .models import Audit, Incident, Risque

AUDIT = {"titre": "Audit annuel", "type": "Interne", "domaine": "Qualité", "date_planification": "2025-01-01"}
INCIDENT = {
    "titre": "Chute en atelier",
    "description": "Glissade sur sol humide",
    "type": "Accident",
    "gravite": "Grave",
    "date_incident": "2025-03-01T10:00:00Z",
}
RISQUE = {
    "titre": "Exposition solvants",
    "description": "Manipulation de solvants sans hotte",
    "type": "Sécurité",
    "categorie": "Risque chimique",
    "probabilite": "Faible",
    "gravite": "Critique",
    "activite": "Nettoyage des cuves",
}


# ----- Regles de calcul -----
def test_score_risque_est_le_produit_des_niveaux():
    assert scoring.evaluer_risque("Faible", "Critique") == (10, "Élevé")
    assert scoring.evaluer_risque("Très faible", "Négligeable") == (1, "Faible")
    assert scoring.evaluer_risque("Modérée", "Faible") == (6, "Modéré")
    assert scoring.evaluer_risque("Très élevée", "Critique") == (25, "Critique")


def test_score_et_conclusion_audit():
    assert scoring.score_audit(["Conforme", "Observation", "Non conforme"]) == 50
    assert scoring.score_audit([]) == 0
    assert scoring.score_audit(["Conforme"] * 5 + ["Non conforme"] * 3) == 63
    assert scoring.score_audit(["Observation"] + ["Non conforme"] * 3) == 13
    assert scoring.conclusion_audit(0, 0) == "Conforme"
    assert scoring.conclusion_audit(0, 2) == "Conforme avec réserves"
    assert scoring.conclusion_audit(1, 0) == "Non conforme"


def test_score_conformite():
    assert scoring.score_conformite("Exemplaire") == 100
    assert scoring.score_conformite("Critique") == 20
    assert scoring.score_conformite("Inconnu") is None


@pytest.mark.django_db
def test_prochain_numero_incremente_par_prefixe():
    assert prochain_numero("TST", 4, 2025) == "TST-2025-0001"
    assert prochain_numero("TST", 4, 2025) == "TST-2025-0002"
    assert prochain_numero("TST", 3, 2026) == "TST-2026-001"


# ----- CRUD generique -----
@pytest.mark.django_db
def test_creation_audit_avec_valeurs_par_defaut(client_manager, manager):
    r = client_manager.post(reverse("audits-list"), AUDIT, format="json")
    assert r.status_code == 201, r.content
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "Audit créé avec succès"
    data = body["data"]
    assert re.fullmatch(rf"AUD-{timezone.now().year}-\d{{3}}", data["numero"])
    assert data["statut"] == "Planifié"
    assert data["priorite"] == "Normale"
    assert data["demandeur"]["id"] == manager.pk
    assert data["auditeur_principal"]["email"] == manager.email
    assert data["created_by"]["id"] == manager.pk


@pytest.mark.django_db
def test_numero_ignore_si_fourni(client_manager):
    r = client_manager.post(reverse("audits-list"), {**AUDIT, "numero": "AUD-1999-999"}, format="json")
    assert r.status_code == 201
    assert r.json()["data"]["numero"] != "AUD-1999-999"


@pytest.mark.django_db
def test_audit_calcule_score_et_conclusion(client_manager):
    payload = {
        **AUDIT,
        "criteres": [
            {"nom": "Procedures", "statut": "Conforme"},
            {"nom": "Enregistrements", "statut": "Observation"},
        ],
    }
    r = client_manager.post(reverse("audits-list"), payload, format="json")
    data = r.json()["data"]
    assert data["score"] == 75
    assert data["conclusion"] == "Conforme avec réserves"
    assert data["nb_observations"] == 1
    assert all(c["id"] for c in data["criteres"])


@pytest.mark.django_db
def test_validation_champs_requis(client_manager):
    r = client_manager.post(reverse("audits-list"), {"titre": "Sans type"}, format="json")
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["code"] == "VALIDATION_ERROR"
    champs = {e["field"] for e in body["errors"]}
    assert {"type", "domaine", "date_planification"} <= champs


@pytest.mark.django_db
def test_statut_invalide_rejete_sans_ecriture(client_manager):
    audit_id = client_manager.post(reverse("audits-list"), AUDIT, format="json").json()["data"]["id"]
    r = client_manager.put(
        reverse("audits-detail", args=[audit_id]), {"statut": "Inventé", "titre": "Nouveau titre"}, format="json"
    )
    assert r.status_code == 400
    audit = Audit.objects.get(pk=audit_id)
    assert audit.statut == "Planifié"
    assert audit.titre == "Audit annuel"


@pytest.mark.django_db
def test_mise_a_jour_partielle(client_manager, manager):
    audit_id = client_manager.post(reverse("audits-list"), AUDIT, format="json").json()["data"]["id"]
    r = client_manager.patch(reverse("audits-detail", args=[audit_id]), {"statut": "En cours"}, format="json")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["statut"] == "En cours"
    assert data["titre"] == "Audit annuel"
    assert data["updated_by"]["id"] == manager.pk


@pytest.mark.django_db
def test_archivage_exclut_des_listes(client_admin):
    ids = [client_admin.post(reverse("audits-list"), AUDIT, format="json").json()["data"]["id"] for _ in range(2)]
    r = client_admin.delete(reverse("audits-detail", args=[ids[0]]))
    assert r.status_code == 200
    assert r.json()["message"] == "Audit archivé avec succès"

    liste = client_admin.get(reverse("audits-list")).json()
    assert [a["id"] for a in liste["audits"]] == [ids[1]]
    assert liste["total"] == 1

    # toujours accessible par son id
    r = client_admin.get(reverse("audits-detail", args=[ids[0]]))
    assert r.status_code == 200
    assert r.json()["data"]["is_archived"] is True

    # le filtre is_archived ne peut pas etre force
    liste = client_admin.get(reverse("audits-list"), {"is_archived": "true"}).json()
    assert liste["total"] == 1


@pytest.mark.django_db
def test_introuvable(client_manager):
    r = client_manager.get(reverse("formations-detail", args=[999]))
    assert r.status_code == 404
    assert r.json()["message"] == "Formation non trouvée"
    assert r.json()["code"] == "NOT_FOUND"


@pytest.mark.django_db
def test_pagination_recherche_et_tri(client_manager):
    for titre in ("Audit alpha", "Audit beta", "Revue gamma"):
        client_manager.post(reverse("audits-list"), {**AUDIT, "titre": titre}, format="json")

    page = client_manager.get(reverse("audits-list"), {"limit": 2, "sort_by": "titre", "sort_order": "asc"}).json()
    assert [a["titre"] for a in page["audits"]] == ["Audit alpha", "Audit beta"]
    assert page["total"] == 3
    assert page["total_pages"] == 2
    assert page["current_page"] == 1
    assert page["has_next_page"] is True
    assert page["has_prev_page"] is False

    recherche = client_manager.get(reverse("audits-list"), {"search": "AUDIT"}).json()
    assert recherche["total"] == 2

    # motif regex invalide cherche litteralement
    r = client_manager.get(reverse("audits-list"), {"search": "(("})
    assert r.status_code == 200
    assert r.json()["total"] == 0


@pytest.mark.django_db
def test_filtres_par_parametres(client_manager):
    client_manager.post(reverse("audits-list"), AUDIT, format="json")
    client_manager.post(reverse("audits-list"), {**AUDIT, "type": "Externe"}, format="json")
    r = client_manager.get(reverse("audits-list"), {"type": "Externe", "inconnu": "x"}).json()
    assert r["total"] == 1
    assert r["audits"][0]["type"] == "Externe"


@pytest.mark.django_db
def test_permissions_par_ressource(client_employe, api_client):
    r = client_employe.post(reverse("audits-list"), AUDIT, format="json")
    assert r.status_code == 403
    assert r.json()["code"] == "INSUFFICIENT_PERMISSIONS"

    assert client_employe.get(reverse("audits-list")).status_code == 200

    r = api_client.get(reverse("audits-list"))
    assert r.status_code == 401
    assert r.json()["code"] == "MISSING_TOKEN"


@pytest.mark.django_db
def test_suppression_reservee_aux_droits_delete(client_manager):
    audit_id = client_manager.post(reverse("audits-list"), AUDIT, format="json").json()["data"]["id"]
    assert client_manager.delete(reverse("audits-detail", args=[audit_id])).status_code == 403


@pytest.mark.django_db
def test_audits_par_statut_et_type(client_manager):
    client_manager.post(reverse("audits-list"), AUDIT, format="json")
    client_manager.post(reverse("audits-list"), {**AUDIT, "type": "Certification"}, format="json")
    r = client_manager.get(reverse("audits-par-statut", args=["Planifié"])).json()
    assert r["total"] == 2
    r = client_manager.get(reverse("audits-par-type", args=["Certification"])).json()
    assert r["total"] == 1
    assert r["audits"][0]["type"] == "Certification"


# ----- Incidents -----
@pytest.mark.django_db
def test_incident_champs_derives(client_manager, manager):
    payload = {**INCIDENT, "cout_materiel": 100, "cout_arret": 50, "date_declaration": "2025-03-01T10:00:00Z",
               "date_resolution": "2025-03-02T12:00:00Z"}
    r = client_manager.post(reverse("incidents-list"), payload, format="json")
    assert r.status_code == 201, r.content
    data = r.json()["data"]
    assert data["numero"].startswith("INC-")
    assert data["cout_total"] == 150
    assert data["delai_resolution"] == 26
    assert data["categorie"] == "Sécurité"
    assert data["urgence"] == "Modérée"
    assert data["declarant"]["id"] == manager.pk
    assert data["est_critique"] is False


@pytest.mark.django_db
def test_incident_fermer_puis_cloturer(client_manager):
    incident_id = client_manager.post(reverse("incidents-list"), INCIDENT, format="json").json()["data"]["id"]
    r = client_manager.post(reverse("incidents-fermer", args=[incident_id]), {"commentaire": "ok"}, format="json")
    assert r.status_code == 200
    assert r.json()["data"]["statut"] == "Fermé"
    assert r.json()["data"]["date_resolution"]

    r = client_manager.post(reverse("incidents-fermer", args=[incident_id]))
    assert r.status_code == 400
    assert r.json()["code"] == "TRANSITION_INVALIDE"

    r = client_manager.post(reverse("incidents-cloturer", args=[incident_id]))
    assert r.status_code == 200
    historique = Incident.objects.get(pk=incident_id).historique
    assert [h["action"] for h in historique] == ["Fermeture", "Clôture"]


@pytest.mark.django_db
def test_incidents_par_gravite(client_employe):
    client_employe.post(reverse("incidents-list"), INCIDENT, format="json")
    client_employe.post(reverse("incidents-list"), {**INCIDENT, "gravite": "Critique"}, format="json")
    r = client_employe.get(reverse("incidents-par-gravite", args=["Critique"])).json()
    assert r["total"] == 1
    assert r["incidents"][0]["est_critique"] is True


# ----- Risques -----
@pytest.mark.django_db
def test_risque_score_et_niveau(client_manager):
    r = client_manager.post(reverse("risques-list"), RISQUE, format="json")
    assert r.status_code == 201, r.content
    data = r.json()["data"]
    assert data["score_risque"] == 10
    assert data["niveau_risque"] == "Élevé"

    r = client_manager.patch(reverse("risques-detail", args=[data["id"]]), {"probabilite": "Très élevée"}, format="json")
    assert r.json()["data"]["score_risque"] == 25
    assert r.json()["data"]["niveau_risque"] == "Critique"


@pytest.mark.django_db
def test_matrice_des_risques(client_manager):
    client_manager.post(reverse("risques-list"), RISQUE, format="json")
    client_manager.post(reverse("risques-list"), {**RISQUE, "probabilite": "Très faible", "gravite": "Faible"},
                        format="json")
    r = client_manager.get(reverse("risques-matrice"))
    assert r.status_code == 200
    data = r.json()["data"]
    assert len(data["eleve"]) == 1
    assert len(data["faible"]) == 1
    assert data["critique"] == []
    grille = data["grille"]
    valeurs = grille["valeurs"]
    assert valeurs[grille["gravites"].index("Critique")][grille["probabilites"].index("Faible")] == 1
    assert sum(sum(ligne) for ligne in valeurs) == 2


@pytest.mark.django_db
def test_risques_par_niveau(client_manager):
    client_manager.post(reverse("risques-list"), RISQUE, format="json")
    r = client_manager.get(reverse("risques-par-niveau", args=["Élevé"])).json()
    assert r["total"] == 1
    assert Risque.objects.get().niveau_risque == "Élevé"


# ----- Formations / Conformites -----
FORMATION = {
    "titre": "Habilitation electrique",
    "description": "Recyclage B1V",
    "type": "Sécurité",
    "categorie": "Recyclage",
    "date_planification": "2025-05-01",
    "duree": 7,
    "lieu": "Interne",
}


@pytest.mark.django_db
def test_formation_couts_et_expiration(client_manager):
    aujourd_hui = timezone.localdate()
    payload = {
        **FORMATION,
        "couts": {"formation": 500, "deplacement": 120.5},
        "date_expiration": (aujourd_hui + timedelta(days=10)).isoformat(),
        "capacite": 2,
    }
    r = client_manager.post(reverse("formations-list"), payload, format="json")
    assert r.status_code == 201, r.content
    data = r.json()["data"]
    assert data["couts"]["total"] == 620.5
    assert data["places_restantes"] == 2
    assert r.json()["message"] == "Formation créée avec succès"

    client_manager.post(
        reverse("formations-list"),
        {**FORMATION, "date_expiration": (aujourd_hui + timedelta(days=90)).isoformat()},
        format="json",
    )
    r = client_manager.get(reverse("formations-expirantes"), {"days": 30}).json()
    assert r["total"] == 1
    assert r["formations"][0]["id"] == data["id"]


@pytest.mark.django_db
def test_formation_capacite_depassee(client_manager):
    payload = {**FORMATION, "capacite": 1, "participants": [{"nom": "A"}, {"nom": "B"}]}
    r = client_manager.post(reverse("formations-list"), payload, format="json")
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "participants"


@pytest.mark.django_db
def test_conformite_score_et_non_conformes(client_manager):
    base = {"titre": "Rejets atmospheriques", "description": "Arrete prefectoral", "type": "Réglementation",
            "domaine": "Environnement"}
    r = client_manager.post(reverse("conformites-list"), {**base, "niveau_conformite": "Bon"}, format="json")
    assert r.status_code == 201, r.content
    assert r.json()["data"]["score_conformite"] == 80

    client_manager.post(reverse("conformites-list"), {**base, "statut_conformite": "Non conforme"}, format="json")
    r = client_manager.get(reverse("conformites-non-conformes")).json()
    assert r["total"] == 1
    assert r["conformites"][0]["statut_conformite"] == "Non conforme"


# ----- Actions correctives & statistiques -----
@pytest.mark.django_db
def test_actions_correctives_en_retard_et_mise_a_jour(client_manager):
    hier = (timezone.localdate() - timedelta(days=3)).isoformat()
    payload = {
        **INCIDENT,
        "actions_correctives": [
            {"description": "Poser un tapis antiderapant", "date_limite": hier},
            {"description": "Former le personnel", "statut": "Terminée", "date_limite": hier},
        ],
    }
    incident = client_manager.post(reverse("incidents-list"), payload, format="json").json()["data"]

    toutes = client_manager.get(reverse("actions_correctives")).json()
    assert toutes["total"] == 2
    assert {a["source"] for a in toutes["actions"]} == {"incident"}

    retard = client_manager.get(reverse("actions_correctives_retard")).json()
    assert retard["total"] == 1
    assert retard["actions"][0]["jours_retard"] == 3
    assert retard["actions"][0]["source_numero"] == incident["numero"]

    action_id = incident["actions_correctives"][0]["id"]
    r = client_manager.put(
        reverse("action_corrective_maj", args=[incident["id"], action_id]), {"statut": "Terminée"}, format="json"
    )
    assert r.status_code == 200, r.content
    assert r.json()["data"]["statut"] == "Terminée"
    assert r.json()["data"]["description"] == "Poser un tapis antiderapant"
    assert client_manager.get(reverse("actions_correctives_retard")).json()["total"] == 0

    r = client_manager.put(reverse("action_corrective_maj", args=[incident["id"], "inconnue"]), {}, format="json")
    assert r.status_code == 404
    assert r.json()["message"] == "Action corrective non trouvée"

    par_statut = client_manager.get(reverse("actions_correctives_statut", args=["Terminée"])).json()
    assert par_statut["total"] == 2


@pytest.mark.django_db
def test_statistiques(client_employe):
    client_employe.post(reverse("incidents-list"), {**INCIDENT, "gravite": "Critique"}, format="json")
    r = client_employe.get(reverse("qhse_stats"))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["incidents"]["total"] == 1
    assert data["incidents"]["critiques"] == 1
    assert data["audits"]["total"] == 0

    etendues = client_employe.get(reverse("qhse_stats_etendues")).json()["data"]
    assert etendues["incidents"]["par_gravite"] == {"Critique": 1}

    aujourd_hui = timezone.localdate().isoformat()
    periode = client_employe.get(reverse("qhse_stats_periode"), {"debut": "2025-01-01", "fin": aujourd_hui})
    assert periode.status_code == 200
    assert periode.json()["data"]["incidents"] == 1

    r = client_employe.get(reverse("qhse_stats_periode"), {"debut": "2025-02-01", "fin": "2025-01-01"})
    assert r.status_code == 400


@pytest.mark.django_db
def test_config_enumerations(client_employe):
    data = client_employe.get(reverse("qhse_config")).json()["data"]
    assert "Interne" in data["audits"]["types"]
    assert data["risques"]["niveaux"] == ["Faible", "Modéré", "Élevé", "Critique"]
