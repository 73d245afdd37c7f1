from datetime import timedelta

import jwt
import pytest
from django.conf import settings
from django.core.cache import cache
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient, APIRequestFactory
from rest_framework_simplejwt.settings import api_settings

from config.settings import base as settings_base
from notifications.models import Notification

from .models import RefreshTokenRecord, User
from .permissions import proprietaire
from .tasks import purger_refresh_tokens_expires
from .throttling import LoginRateThrottle

MOT_DE_PASSE = "Secret123"

INSCRIPTION = {
    "email": "Alice.Durand@example.com",
    "password": "StrongPassw0rd",
    "nom": "Durand",
    "prenom": "Alice",
    "entreprise": "ACME",
    "poste": "Technicienne qualité",
}


def _connexion(client, email, password=MOT_DE_PASSE):
    return client.post(reverse("login"), {"email": email, "password": password}, format="json")


@pytest.mark.django_db
def test_inscription_connexion_et_profil():
    client = APIClient()

    r = client.post(reverse("register"), INSCRIPTION, format="json")
    assert r.status_code == 201, r.content
    data = r.json()["data"]
    assert data["user"]["email"] == "alice.durand@example.com"
    assert data["user"]["role"] == "employe"
    assert "incident_write" in data["user"]["permissions"]
    assert data["token"] and data["refresh_token"]

    r = _connexion(client, "alice.durand@example.com", "StrongPassw0rd")
    assert r.status_code == 200, r.content
    token = r.json()["data"]["token"]

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    r = client.get(reverse("me"))
    assert r.status_code == 200
    assert r.json()["data"]["user"]["prenom"] == "Alice"


@pytest.mark.django_db
def test_inscription_refusee():
    client = APIClient()
    client.post(reverse("register"), INSCRIPTION, format="json")

    r = client.post(reverse("register"), INSCRIPTION, format="json")
    assert r.status_code == 400
    assert r.json()["code"] == "USER_EXISTS"

    r = client.post(reverse("register"), {**INSCRIPTION, "email": "b@example.com", "password": "simple"}, format="json")
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "password"

    r = client.post(reverse("register"), {**INSCRIPTION, "email": "c@example.com", "role": "admin"}, format="json")
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.django_db
def test_connexion_echecs_et_verrouillage(employe):
    client = APIClient()
    r = _connexion(client, employe.email, "Mauvais1")
    assert r.status_code == 401
    assert r.json()["code"] == "INVALID_CREDENTIALS"
    assert _connexion(client, "inconnu@example.com").status_code == 401

    for _ in range(settings.LOGIN_MAX_ATTEMPTS - 1):
        _connexion(client, employe.email, "Mauvais1")
    employe.refresh_from_db()
    assert employe.is_locked

    # le bon mot de passe ne suffit plus tant que le verrou est actif
    r = _connexion(client, employe.email)
    assert r.status_code == 423
    assert r.json()["code"] == "ACCOUNT_LOCKED"

    employe.lock_until = timezone.now() - timedelta(minutes=1)
    employe.save()
    r = _connexion(client, employe.email)
    assert r.status_code == 200
    employe.refresh_from_db()
    assert employe.login_attempts == 0


@pytest.mark.django_db
def test_verrouillage_avant_limitation_par_defaut(employe, monkeypatch):
    cache.clear()
    taux_livre = settings_base.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"]["login"]
    monkeypatch.setattr(LoginRateThrottle, "THROTTLE_RATES", {"login": taux_livre})
    client = APIClient()

    codes = [_connexion(client, employe.email, "Mauvais1").status_code for _ in range(settings.LOGIN_MAX_ATTEMPTS)]
    assert codes == [401] * settings.LOGIN_MAX_ATTEMPTS

    r = _connexion(client, employe.email)
    assert r.status_code == 423
    assert r.json()["code"] == "ACCOUNT_LOCKED"


def test_lecture_des_taux_de_connexion():
    throttle = LoginRateThrottle()
    assert throttle.parse_rate("5/15m") == (5, 900)
    assert throttle.parse_rate("5/15min") == (5, 900)
    assert throttle.parse_rate("10/h") == (10, 3600)
    assert throttle.parse_rate("3/2day") == (3, 172800)
    assert throttle.parse_rate(None) == (None, None)
    with pytest.raises(ValueError):
        throttle.parse_rate("5/15x")

@pytest.mark.django_db
def test_compte_desactive(creer_utilisateur):
    user = creer_utilisateur("employe", is_active=False)
    r = _connexion(APIClient(), user.email)
    assert r.status_code == 403
    assert r.json()["code"] == "ACCOUNT_DISABLED"


@pytest.mark.django_db
def test_erreurs_de_token(employe):
    client = APIClient()
    r = client.get(reverse("me"))
    assert r.status_code == 401
    assert r.json()["code"] == "MISSING_TOKEN"

    client.credentials(HTTP_AUTHORIZATION="Bearer pas-un-jwt")
    assert client.get(reverse("me")).json()["code"] == "INVALID_TOKEN"

    autre_secret = jwt.encode({"id": employe.pk, "token_type": "access"}, "autre-secret", algorithm="HS256")
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {autre_secret}")
    assert client.get(reverse("me")).json()["code"] == "INVALID_SIGNATURE"

    expire = jwt.encode(
        {"id": employe.pk, "token_type": "access", "exp": timezone.now() - timedelta(hours=1)},
        api_settings.SIGNING_KEY,
        algorithm="HS256",
    )
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {expire}")
    r = client.get(reverse("me"))
    assert r.status_code == 401
    assert r.json()["code"] == "TOKEN_EXPIRED"


@pytest.mark.django_db
def test_refresh_et_deconnexion(employe):
    client = APIClient()
    data = _connexion(client, employe.email).json()["data"]
    refresh = data["refresh_token"]

    r = client.post(reverse("token_refresh"), {"refresh_token": refresh}, format="json")
    assert r.status_code == 200, r.content
    assert r.json()["data"]["token"]

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {data['token']}")
    assert client.post(reverse("logout"), {"refresh_token": refresh}, format="json").status_code == 200
    assert not RefreshTokenRecord.objects.filter(user=employe).exists()

    r = APIClient().post(reverse("token_refresh"), {"refresh_token": refresh}, format="json")
    assert r.status_code == 401
    assert r.json()["code"] == "INVALID_REFRESH_TOKEN"


@pytest.mark.django_db
def test_mise_a_jour_profil(client_employe, employe):
    r = client_employe.put(
        reverse("profile"),
        {"poste": "Opérateur", "preferences": {"theme": "dark", "notifications": {"sms": True}}, "role": "admin"},
        format="json",
    )
    assert r.status_code == 200, r.content
    user = r.json()["data"]["user"]
    assert user["poste"] == "Opérateur"
    assert user["role"] == "employe"
    assert user["preferences"]["theme"] == "dark"
    assert user["preferences"]["langue"] == "fr"
    assert user["preferences"]["notifications"] == {"email": True, "push": True, "sms": True}


@pytest.mark.django_db
def test_changement_mot_de_passe(employe):
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {_connexion(client, employe.email).json()['data']['token']}")

    r = client.put(
        reverse("change_password"), {"current_password": "Faux1234", "new_password": "Nouveau123"}, format="json"
    )
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_CURRENT_PASSWORD"

    r = client.put(
        reverse("change_password"), {"current_password": MOT_DE_PASSE, "new_password": "Nouveau123"}, format="json"
    )
    assert r.status_code == 200
    assert not RefreshTokenRecord.objects.filter(user=employe).exists()
    assert _connexion(APIClient(), employe.email, "Nouveau123").status_code == 200


@pytest.mark.django_db
def test_annuaire_utilisateurs(client_manager, client_employe, manager, employe, creer_utilisateur):
    externe = creer_utilisateur("employe", entreprise="Autre SA", nom="Bernard")

    body = client_manager.get(reverse("users-list")).json()
    assert body["total"] == 2
    assert {u["id"] for u in body["users"]} == {manager.pk, employe.pk}
    assert client_manager.get(reverse("users-list"), {"role": "employe"}).json()["total"] == 1

    r = client_manager.get(reverse("users-detail", args=[externe.pk]))
    assert r.status_code == 403
    assert r.json()["code"] == "UNAUTHORIZED_ACCESS"

    r = client_employe.get(reverse("users-list"))
    assert r.status_code == 403
    assert r.json()["code"] == "INSUFFICIENT_ROLE"


@pytest.mark.django_db
def test_permissions_suivent_le_role(employe):
    assert not employe.has_qhse_permission("qualite_write")
    employe.role = "manager"
    employe.save()
    employe = User.objects.get(pk=employe.pk)
    assert employe.has_qhse_permission("qualite_write")
    assert not employe.has_qhse_permission("qualite_delete")


@pytest.mark.django_db
def test_purge_refresh_tokens(employe):
    RefreshTokenRecord.objects.create(user=employe, token="expire", expires_at=timezone.now() - timedelta(days=1))
    RefreshTokenRecord.objects.create(user=employe, token="valide", expires_at=timezone.now() + timedelta(days=1))
    assert purger_refresh_tokens_expires() == 1
    assert list(RefreshTokenRecord.objects.values_list("token", flat=True)) == ["valide"]


@pytest.mark.django_db
def test_controle_du_proprietaire(admin, manager, employe):
    notification = Notification.objects.create(destinataire=employe, type="info", titre="t", message="m")
    permission = proprietaire("destinataire")()

    for user, attendu in ((employe, True), (manager, False), (admin, True)):
        request = APIRequestFactory().get("/")
        request.user = user
        assert permission.has_object_permission(request, None, notification) is attendu
        assert request.resource is notification
    assert permission.code == "UNAUTHORIZED_ACCESS"
