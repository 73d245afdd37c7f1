from rest_framework.permissions import SAFE_METHODS, BasePermission

from .models import Role


def _est_admin(user) -> bool:
    return bool(user and user.is_authenticated and user.is_admin)


class HasPermission(BasePermission):
    """Autorise si l'utilisateur possede `permission` (ou le joker "admin")."""

    message = "Permissions insuffisantes"
    code = "INSUFFICIENT_PERMISSIONS"
    permission = None

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        return user.has_qhse_permission(self.permission)


def permission_requise(permission: str):
    """Fabrique une classe HasPermission pour une permission donnee."""
    return type(f"HasPermission_{permission}", (HasPermission,), {"permission": permission})


class HasResourcePermission(HasPermission):
    """
    Deduit la permission de la ressource de la vue et de la methode HTTP:
    GET -> <prefix>_read, POST/PUT/PATCH -> <prefix>_write, DELETE -> <prefix>_delete.
    Une ressource sans prefixe demande seulement d'etre authentifie.
    """

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        resource = getattr(view, "resource", None)
        prefix = getattr(resource, "permission", None)
        if not prefix:
            return True
        if request.method in SAFE_METHODS:
            droit = "read"
        elif request.method == "DELETE":
            droit = "delete"
        else:
            droit = "write"
        return user.has_qhse_permission(f"{prefix}_{droit}")


class HasRole(BasePermission):
    message = "Rôle insuffisant"
    code = "INSUFFICIENT_ROLE"
    roles = ()

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.role in self.roles)


def role_requis(*roles: str):
    return type("HasRole_" + "_".join(roles), (HasRole,), {"roles": tuple(roles)})


class _AccesObjet(BasePermission):
    """
    Controle d'acces sur l'objet recupere par la vue.
    Les admins passent toujours; l'objet est expose dans request.resource
    pour eviter une seconde lecture.
    """

    message = "Accès non autorisé à cette ressource"
    code = "UNAUTHORIZED_ACCESS"
    field = None

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        request.resource = obj
        if _est_admin(request.user):
            return True
        return self.autorise(request.user, obj)

    def autorise(self, user, obj) -> bool:
        raise NotImplementedError


class IsOwnerOrAdmin(_AccesObjet):
    field = "created_by"

    def autorise(self, user, obj) -> bool:
        owner_id = getattr(obj, f"{self.field}_id", None)
        if owner_id is None:
            owner = getattr(obj, self.field, None)
            owner_id = getattr(owner, "pk", owner)
        return owner_id == user.pk


class IsSameCompany(_AccesObjet):
    field = "entreprise"

    def autorise(self, user, obj) -> bool:
        return getattr(obj, self.field, None) == user.entreprise


def proprietaire(field: str):
    return type(f"IsOwnerOrAdmin_{field}", (IsOwnerOrAdmin,), {"field": field})


def meme_entreprise(field: str):
    return type(f"IsSameCompany_{field}", (IsSameCompany,), {"field": field})


GESTIONNAIRES = (Role.ADMIN, Role.MANAGER)
