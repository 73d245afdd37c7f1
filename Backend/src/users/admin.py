from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin
from django.contrib.auth.forms import BaseUserCreationForm, UserChangeForm

from .models import RefreshTokenRecord, User


class QhseUserCreationForm(BaseUserCreationForm):
    class Meta:
        model = User
        fields = ("email", "nom", "prenom", "entreprise", "role")


class QhseUserChangeForm(UserChangeForm):
    class Meta:
        model = User
        fields = "__all__"


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    """Admin pour le modèle utilisateur (connexion par email)."""

    add_form = QhseUserCreationForm
    form = QhseUserChangeForm

    # Champs affichés dans la liste
    list_display = ("id", "email", "nom", "prenom", "role", "entreprise", "is_active", "lock_until")
    list_filter = ("role", "entreprise", "is_active", "is_staff")
    search_fields = ("email", "nom", "prenom", "entreprise")
    ordering = ("id",)

    # Configuration des fieldsets (édition)
    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Infos personnelles", {"fields": ("nom", "prenom", "telephone", "avatar")}),
        ("Organisation", {"fields": ("entreprise", "departement", "poste")}),
        ("Droits QHSE", {"fields": ("role", "permissions")}),
        (
            "Permissions Django",
            {"fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions")},
        ),
        ("Sécurité", {"fields": ("login_attempts", "lock_until", "last_login", "date_joined")}),
        ("Préférences", {"fields": ("preferences",)}),
    )

    # Configuration des fieldsets (création)
    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "nom", "prenom", "entreprise", "role", "password1", "password2"),
            },
        ),
    )


@admin.register(RefreshTokenRecord)
class RefreshTokenRecordAdmin(admin.ModelAdmin):
    list_display = ("user", "created_at", "expires_at")
    search_fields = ("user__email",)
