from django.urls import path
from rest_framework.routers import SimpleRouter

from .views import (
    ChangePasswordView,
    LoginView,
    LogoutView,
    MeView,
    ProfileView,
    RefreshView,
    RegisterView,
    UserViewSet,
)

router = SimpleRouter(trailing_slash=False)
router.register("users", UserViewSet, basename="users")

urlpatterns = [
    path("register", RegisterView.as_view(), name="register"),
    path("login", LoginView.as_view(), name="login"),
    path("refresh", RefreshView.as_view(), name="token_refresh"),
    path("logout", LogoutView.as_view(), name="logout"),

    # Profil courant
    path("me", MeView.as_view(), name="me"),
    path("profile", ProfileView.as_view(), name="profile"),

    # Changer le mot de passe
    path("change-password", ChangePasswordView.as_view(), name="change_password"),
] + router.urls
