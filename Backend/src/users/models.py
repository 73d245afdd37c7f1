from datetime import timedelta

from django.conf import settings
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.utils import timezone


class Role(models.TextChoices):
    ADMIN = "admin", "Administrateur"
    MANAGER = "manager", "Manager"
    RESPONSABLE_QHSE = "responsable_qhse", "Responsable QHSE"
    EMPLOYE = "employe", "Employé"


DOMAINES = ("audit", "incident", "risque", "formation", "conformite", "qualite", "laboratoire", "hse")

PERMISSIONS_DISPONIBLES = (
    ["admin"]
    + [f"{d}_{droit}" for d in DOMAINES for droit in ("read", "write", "delete")]
    + ["config_read", "config_write"]
)


def permissions_par_defaut(role: str) -> list:
    """Permissions attribuees automatiquement selon le role."""
    lecture_ecriture = [f"{d}_{droit}" for d in DOMAINES for droit in ("read", "write")]
    if role == Role.ADMIN:
        return ["admin"]
    if role == Role.MANAGER:
        return lecture_ecriture + ["config_read"]
    if role == Role.RESPONSABLE_QHSE:
        return lecture_ecriture
    return [
        "audit_read",
        "incident_read",
        "incident_write",
        "formation_read",
        "conformite_read",
        "qualite_read",
        "laboratoire_read",
        "hse_read",
    ]


def preferences_par_defaut() -> dict:
    return {
        "theme": "light",
        "langue": "fr",
        "notifications": {"email": True, "push": True, "sms": False},
    }


class UserManager(BaseUserManager):
    """Manager avec l'email comme identifiant de connexion."""

    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("L'email est requis")
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", Role.ADMIN)
        return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
    """
    Utilisateur de la plateforme QHSE.

    - Connexion par email (pas de username)
    - role + permissions (liste de chaines, "admin" = joker)
    - rattachement a une entreprise (cloisonnement des donnees)
    - verrouillage temporaire apres trop d'echecs de connexion
    """

    username = None
    first_name = None
    last_name = None

    email = models.EmailField("email", unique=True)
    nom = models.CharField(max_length=50)
    prenom = models.CharField(max_length=50)
    role = models.CharField(max_length=32, choices=Role.choices, default=Role.EMPLOYE)
    permissions = models.JSONField(default=list, blank=True)
    entreprise = models.CharField(max_length=100)
    departement = models.CharField(max_length=100, blank=True, default="")
    poste = models.CharField(max_length=100, blank=True, default="")
    telephone = models.CharField(max_length=30, blank=True, default="")
    avatar = models.URLField(blank=True, default="")
    is_email_verified = models.BooleanField(default=False)
    login_attempts = models.PositiveIntegerField(default=0)
    lock_until = models.DateTimeField(null=True, blank=True)
    preferences = models.JSONField(default=preferences_par_defaut, blank=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["nom", "prenom", "entreprise"]

    objects = UserManager()

    class Meta:
        verbose_name = "Utilisateur"
        verbose_name_plural = "Utilisateurs"
        ordering = ["id"]

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._role_initial = instance.__dict__.get("role")
        return instance

    def __str__(self) -> str:
        return self.nom_complet or self.email

    @property
    def nom_complet(self) -> str:
        return f"{self.prenom} {self.nom}".strip()

    def get_full_name(self) -> str:
        return self.nom_complet

    def get_short_name(self) -> str:
        return self.prenom

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.lower()
        if self._state.adding:
            if not self.permissions:
                self.permissions = permissions_par_defaut(self.role)
        elif self.role != getattr(self, "_role_initial", self.role):
            self.permissions = permissions_par_defaut(self.role)
        super().save(*args, **kwargs)
        self._role_initial = self.role

    # ----- Permissions -----
    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN or "admin" in (self.permissions or [])

    def has_qhse_permission(self, permission: str) -> bool:
        perms = self.permissions or []
        return "admin" in perms or permission in perms

    # ----- Verrouillage -----
    @property
    def is_locked(self) -> bool:
        return bool(self.lock_until and self.lock_until > timezone.now())

    def enregistrer_echec_connexion(self) -> None:
        """Incremente les echecs; verrouille le compte au seuil configure."""
        now = timezone.now()
        if self.lock_until and self.lock_until <= now:
            # verrou expire: on repart de zero
            self.login_attempts = 1
            self.lock_until = None
        else:
            self.login_attempts += 1
            if self.login_attempts >= settings.LOGIN_MAX_ATTEMPTS and not self.is_locked:
                self.lock_until = now + timedelta(hours=settings.LOGIN_LOCK_HOURS)
        self.save(update_fields=["login_attempts", "lock_until"])

    def enregistrer_connexion(self) -> None:
        self.login_attempts = 0
        self.lock_until = None
        self.last_login = timezone.now()
        self.save(update_fields=["login_attempts", "lock_until", "last_login"])


class RefreshTokenRecord(models.Model):
    """Refresh token emis pour un utilisateur (supprime a la deconnexion)."""

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="refresh_tokens")
    token = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField()

    class Meta:
        verbose_name = "Refresh token"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.user} ({self.created_at:%Y-%m-%d %H:%M})"
