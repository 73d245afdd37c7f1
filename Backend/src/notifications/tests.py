from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone

from hse.models import EPI, ProduitChimique
from qhse.models import Incident

from .models import Notification
from .tasks import generer_alertes

MESSAGE = {"type": "info", "titre": "Audit planifié", "message": "Audit fournisseur lundi", "module": "qhse"}


@pytest.mark.django_db
def test_creation_et_liste_par_utilisateur(client_manager, client_employe, manager):
    r = client_manager.post(reverse("notifications-list"), MESSAGE, format="json")
    assert r.status_code == 201, r.content
    data = r.json()["data"]
    assert data["destinataire"] == manager.pk
    assert data["lu"] is False
    assert data["priorite"] == "medium"

    body = client_manager.get(reverse("notifications-list")).json()
    assert body["total"] == 1
    assert body["non_lues"] == 1
    assert client_employe.get(reverse("notifications-list")).json()["total"] == 0

    notif_id = data["id"]
    r = client_employe.get(reverse("notifications-detail", args=[notif_id]))
    assert r.status_code == 403
    assert r.json()["code"] == "UNAUTHORIZED_ACCESS"
    assert client_employe.delete(reverse("notifications-detail", args=[notif_id])).status_code == 403
    assert client_manager.get(reverse("notifications-detail", args=[999])).status_code == 404
    assert client_manager.get(reverse("notifications-detail", args=[notif_id])).json()["data"]["titre"] == "Audit planifié"


@pytest.mark.django_db
def test_creation_champs_requis(client_manager):
    r = client_manager.post(reverse("notifications-list"), {"type": "info"}, format="json")
    assert r.status_code == 400
    champs = {e["field"] for e in r.json()["errors"]}
    assert champs == {"titre", "message"}


@pytest.mark.django_db
def test_employe_ne_notifie_que_lui_meme(client_employe, employe, manager):
    r = client_employe.post(reverse("notifications-list"), {**MESSAGE, "destinataire": manager.pk}, format="json")
    assert r.json()["data"]["destinataire"] == employe.pk


@pytest.mark.django_db
def test_filtres_lecture_et_suppression(client_manager, manager):
    for module, type_ in (("qhse", "info"), ("hse", "warning"), ("hse", "error")):
        Notification.objects.create(destinataire=manager, type=type_, titre="t", message="m", module=module)
    ids = list(Notification.objects.order_by("pk").values_list("pk", flat=True))

    assert client_manager.get(reverse("notifications-list"), {"module": "hse"}).json()["total"] == 2
    assert client_manager.get(reverse("notifications-list"), {"module": "qhse"}).json()["total"] == 1
    assert client_manager.get(reverse("notifications-list"), {"type": "error"}).json()["total"] == 1

    r = client_manager.post(reverse("notifications-read", args=[ids[0]]))
    assert r.json()["data"]["lu"] is True
    assert r.json()["data"]["lu_le"] is not None
    assert client_manager.get(reverse("notifications-list"), {"lu": "false"}).json()["total"] == 2

    client_manager.post(reverse("notifications-read-all"))
    assert client_manager.get(reverse("notifications-list")).json()["non_lues"] == 0

    assert client_manager.delete(reverse("notifications-detail", args=[ids[1]])).status_code == 200
    assert Notification.objects.count() == 2

    client_manager.delete(reverse("notifications-purger-lues"))
    assert Notification.objects.count() == 0


@pytest.mark.django_db
def test_generer_alertes(client_manager, manager):
    hier = timezone.localdate() - timedelta(days=1)
    EPI.objects.create(
        created_by=manager, nom="Casque", type="Casque", categorie="Protection de la tête",
        quantite_totale=2, seuil_alerte=5,
    )
    EPI.objects.create(
        created_by=manager, nom="Bouchons", type="Protection auditive", categorie="Protection auditive",
        quantite_totale=100, seuil_alerte=5,
    )
    ProduitChimique.objects.create(created_by=manager, nom="Soude", type="Base", etat="Solide", date_peremption=hier)
    Incident.objects.create(
        created_by=manager, titre="Chute", description="Escalier", type="Accident", gravite="Grave",
        date_incident=timezone.now(),
        actions_correctives=[{"id": "a1", "description": "Poser une rampe", "statut": "Planifiée",
                              "date_limite": (hier - timedelta(days=40)).isoformat()}],
    )

    r = client_manager.post(reverse("notifications-generer"))
    assert r.status_code == 201
    body = r.json()
    assert body["total"] == 3
    par_module = sorted((n["module"], n["type"]) for n in body["notifications"])
    assert par_module == [("hse", "error"), ("hse", "warning"), ("qhse", "warning")]
    action = next(n for n in body["notifications"] if n["module"] == "qhse")
    assert action["priorite"] == "critical"

    # alertes deja notifiees et non lues: pas de doublon
    r = client_manager.post(reverse("notifications-generer"))
    assert r.status_code == 200
    assert r.json()["total"] == 0


@pytest.mark.django_db
def test_tache_generer_alertes(manager, employe):
    EPI.objects.create(
        created_by=manager, nom="Gants", type="Gants", categorie="Protection des mains", quantite_totale=0,
    )
    assert generer_alertes() == 1
    assert Notification.objects.filter(destinataire=manager).count() == 1
    assert not Notification.objects.filter(destinataire=employe).exists()


@pytest.mark.django_db
def test_notifications_authentification(api_client):
    assert api_client.get(reverse("notifications-list")).status_code == 401


@pytest.mark.django_db
def test_admin_accede_aux_notifications_des_autres(client_admin, manager):
    notification = Notification.objects.create(destinataire=manager, type="info", titre="t", message="m")
    r = client_admin.post(reverse("notifications-read", args=[notification.pk]))
    assert r.status_code == 200
    notification.refresh_from_db()
    assert notification.lu is True
    # la liste reste limitee aux notifications de l'appelant
    assert client_admin.get(reverse("notifications-list")).json()["total"] == 0
