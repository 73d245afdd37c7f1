from datetime import date, datetime

import pytest
from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.urls import reverse
from rest_framework.test import APIClient

from hse.models import EPI
from qualite.models import ControleQualite

from .kpis import evolution, stddev_pop, taux
from .utils import ajouter_mois, as_date, as_datetime, to_number


@pytest.mark.django_db
def test_health_ping_et_infos():
    client = APIClient()

    r = client.get(reverse("health"))
    assert r.status_code == 200
    assert r.json()["status"] == "OK"
    assert r.json()["database"] == "connected"

    assert client.get(reverse("ping")).json()["pong"] is True
    assert "version" in client.get(reverse("info")).json()

    r = client.get(reverse("db_test"))
    assert r.json()["success"] is True
    assert r.json()["data"]["users"] == 0

    endpoints = client.get(reverse("root_info")).json()["endpoints"]
    assert endpoints["qualite"] == "/api/qualite"


@pytest.mark.django_db
def test_request_id_propage():
    client = APIClient()
    r = client.get(reverse("ping"), HTTP_X_REQUEST_ID="req-42")
    assert r["X-Request-ID"] == "req-42"
    assert len(client.get(reverse("ping"))["X-Request-ID"]) == 32


@pytest.mark.django_db
def test_format_des_erreurs(client_manager):
    r = client_manager.post(reverse("audits-list"), data="{pas du json", content_type="application/json")
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["code"] == "INVALID_JSON"

    r = client_manager.get(reverse("audits-detail", args=[999]))
    assert r.status_code == 404
    assert r.json()["code"] == "NOT_FOUND"

    r = client_manager.post(reverse("audits-list"), {"titre": "Audit"}, format="json")
    body = r.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["message"] == "Erreur de validation"
    champs = {e["field"] for e in body["errors"]}
    assert "titre" not in champs
    assert "date_planification" in champs
    assert all(set(e) == {"field", "message", "value"} for e in body["errors"])


def test_taux_et_evolution():
    assert taux(1, 3) == 33
    assert taux(5, 0) == 0
    assert taux(1, 3, decimales=1) == 33.3
    assert taux(5, 8) == 63
    assert taux(1, 8, decimales=1) == 12.5
    assert taux(1, 16, decimales=1) == 6.3
    assert evolution(120, 100) == 20.0
    assert evolution(50, 0) == 0.0
    assert stddev_pop([2, 4, 4, 4, 5, 5, 7, 9]) == 2.0
    assert stddev_pop([None]) is None


def test_dates_et_nombres():
    assert ajouter_mois(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert ajouter_mois(datetime(2023, 11, 15, 8, 30), 3) == datetime(2024, 2, 15, 8, 30)
    assert as_date("2024-03-05T10:00:00Z") == date(2024, 3, 5)
    assert as_datetime("pas une date") is None
    assert as_datetime(date(2024, 3, 5)).tzinfo is not None
    assert to_number("3.5") == 3.5
    assert to_number(None, default=-1) == -1


@pytest.mark.django_db
def test_charger_demo():
    call_command("charger_demo", "--entreprise", "Test SA")
    assert get_user_model().objects.filter(entreprise="Test SA").count() == 4
    assert EPI.objects.get().quantite_disponible == 18
    assert ControleQualite.objects.get().evaluation == "Conforme"

    # deuxieme passage sans effet
    call_command("charger_demo")
    assert get_user_model().objects.count() == 4
