import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

MOT_DE_PASSE = "Secret123"


@pytest.fixture
def creer_utilisateur(db):
    """Fabrique d'utilisateurs: creer_utilisateur(role="manager", entreprise="ACME")."""
    compteur = {"n": 0}

    def _creer(role="employe", entreprise="ACME", **extra):
        compteur["n"] += 1
        email = extra.pop("email", f"{role}{compteur['n']}@example.com")
        return get_user_model().objects.create_user(
            email=email,
            password=extra.pop("password", MOT_DE_PASSE),
            nom=extra.pop("nom", "Martin"),
            prenom=extra.pop("prenom", role.capitalize()),
            role=role,
            entreprise=entreprise,
            **extra,
        )

    return _creer


@pytest.fixture
def admin(creer_utilisateur):
    return creer_utilisateur("admin")


@pytest.fixture
def manager(creer_utilisateur):
    return creer_utilisateur("manager")


@pytest.fixture
def employe(creer_utilisateur):
    return creer_utilisateur("employe")


@pytest.fixture
def api_client():
    return APIClient()


def _client_pour(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def client_admin(admin):
    return _client_pour(admin)


@pytest.fixture
def client_manager(manager):
    return _client_pour(manager)


@pytest.fixture
def client_employe(employe):
    return _client_pour(employe)
