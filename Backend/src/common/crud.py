"""
Socle CRUD generique.

Chaque entite declare un ResourceConfig (champs de recherche, relations a
peupler, nom de collection, prefixe de permission...) consomme par un seul
jeu de handlers: ResourceViewSet.
"""
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from django.core.exceptions import FieldDoesNotExist
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import models
from django.db.models import Q
from django.http import Http404
from rest_framework import serializers, status, viewsets
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from users.permissions import HasResourcePermission

from .pagination import QhsePagination

logger = logging.getLogger(__name__)

PARAMS_RESERVES = {"page", "limit", "search", "sort_by", "sort_order", "is_archived", "format"}
_VRAI = {"1", "true", "yes", "oui", "on"}
_FAUX = {"0", "false", "no", "non", "off"}


@dataclass(frozen=True)
class ResourceConfig:
    label: str
    collection: str
    search_fields: Tuple[str, ...] = ("numero",)
    populate_fields: Tuple[str, ...] = ()
    prefetch_fields: Tuple[str, ...] = ()
    filter_fields: Dict[str, str] = field(default_factory=dict)
    permission: Optional[str] = None
    user_defaults: Tuple[str, ...] = ()
    default_ordering: str = "-created_at"
    feminin: bool = False

    def accord(self, participe: str) -> str:
        return f"{participe}e" if self.feminin else participe

    @property
    def message_introuvable(self) -> str:
        return f"{self.label} non {self.accord('trouvé')}"


def motif_recherche(texte: str) -> str:
    """Motif regex utilisateur; un motif invalide est cherche litteralement."""
    try:
        re.compile(texte)
        return texte
    except re.error:
        return re.escape(texte)


def _booleen(value: str) -> bool:
    v = str(value).lower()
    if v in _VRAI:
        return True
    if v in _FAUX:
        return False
    raise serializers.ValidationError({"filtre": f"Booléen attendu, reçu '{value}'"})


def _nombre(value: str):
    try:
        return int(value)
    except ValueError:
        pass
    try:
        nombre = float(value)
    except ValueError:
        return None
    return nombre if math.isfinite(nombre) else None


def filtres_depuis_params(model, params, alias: Optional[Dict[str, str]] = None) -> Q:
    """
    Construit les filtres de liste a partir des parametres de requete restants.
    - champ a choix, nombre, date, booleen, cle etrangere -> egalite
    - texte libre -> regex insensible a la casse
    - "cle.sous_cle" sur un champ JSON -> egalite sur la cle
    Les parametres inconnus sont ignores.
    """
    alias = alias or {}
    q = Q()
    for key, value in params.items():
        if key in PARAMS_RESERVES or value in ("", None):
            continue
        if key in alias:
            q &= Q(**{alias[key]: value})
            continue
        racine, _, chemin = key.partition(".")
        try:
            champ = model._meta.get_field(racine)
        except FieldDoesNotExist:
            continue
        if not getattr(champ, "concrete", False):
            continue
        if chemin:
            if isinstance(champ, models.JSONField):
                cle = f"{racine}__{chemin.replace('.', '__')}"
                condition = Q(**{cle: value})
                nombre = _nombre(value)
                if nombre is not None:
                    # la valeur JSON peut etre stockee en nombre ou en texte
                    condition |= Q(**{cle: nombre})
                q &= condition
            continue
        if champ.is_relation:
            if not str(value).isdigit():
                raise serializers.ValidationError({key: "Identifiant invalide"})
            q &= Q(**{champ.attname: int(value)})
        elif isinstance(champ, models.BooleanField):
            q &= Q(**{racine: _booleen(value)})
        elif isinstance(champ, (models.CharField, models.TextField)) and not champ.choices:
            q &= Q(**{f"{racine}__iregex": motif_recherche(value)})
        elif isinstance(champ, models.JSONField):
            continue
        else:
            try:
                champ.to_python(value)
            except (DjangoValidationError, ValueError):
                raise serializers.ValidationError({key: f"Valeur de filtre invalide: '{value}'"})
            q &= Q(**{racine: value})
    return q


def recherche(search_fields, texte: str) -> Q:
    motif = motif_recherche(texte)
    q = Q()
    for name in search_fields:
        q |= Q(**{f"{name}__iregex": motif})
    return q


class ResourceViewSet(viewsets.ModelViewSet):
    """
    list / retrieve / create / update / destroy(archive) pour une entite.

    Les vues filles declarent `resource`, `queryset` et `serializer_class`,
    puis ajoutent leurs routes metier (@action).
    """

    resource: ResourceConfig = None
    permission_classes = [HasResourcePermission]
    pagination_class = QhsePagination
    lookup_value_regex = r"\d+"
    http_method_names = ["get", "post", "put", "patch", "delete", "head", "options"]

    # ----- Requetes -----
    def get_queryset(self):
        qs = super().get_queryset()
        champs = ("created_by", "updated_by") + tuple(self.resource.populate_fields)
        qs = qs.select_related(*champs)
        if self.resource.prefetch_fields:
            qs = qs.prefetch_related(*self.resource.prefetch_fields)
        return qs

    def actifs(self):
        """Enregistrements non archives (toutes les listes partent d'ici)."""
        return self.get_queryset().filter(is_archived=False)

    def ordre(self, params) -> str:
        sort_by = params.get("sort_by")
        if not sort_by:
            return self.resource.default_ordering
        try:
            champ = self.queryset.model._meta.get_field(sort_by)
        except FieldDoesNotExist:
            return self.resource.default_ordering
        if not getattr(champ, "concrete", False) or isinstance(champ, models.JSONField):
            return self.resource.default_ordering
        return sort_by if params.get("sort_order", "desc").lower() == "asc" else f"-{sort_by}"

    def filter_queryset(self, queryset):
        if self.action != "list":
            return queryset
        params = self.request.query_params
        queryset = queryset.filter(is_archived=False)
        texte = params.get("search")
        if texte:
            queryset = queryset.filter(recherche(self.resource.search_fields, texte))
        queryset = queryset.filter(
            filtres_depuis_params(self.queryset.model, params, self.resource.filter_fields)
        )
        return queryset.order_by(self.ordre(params), "-pk")

    def get_object(self):
        try:
            return super().get_object()
        except Http404:
            raise NotFound(self.resource.message_introuvable)

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context["champs_utilisateur"] = self.resource.user_defaults
        return context

    def get_paginated_response(self, data):
        return self.paginator.get_paginated_response(data, self.resource.collection)

    # ----- Reponses -----
    def reponse_objet(self, instance, message: str = None, code=status.HTTP_200_OK) -> Response:
        body = {"success": True, "data": self.get_serializer(instance).data}
        if message:
            body["message"] = message
        return Response(body, status=code)

    def reponse_collection(self, items, **extra) -> Response:
        data = self.get_serializer(items, many=True).data
        return Response({"success": True, self.resource.collection: data, "total": len(data), **extra})

    def recharger(self, instance):
        return self.get_queryset().get(pk=instance.pk)

    # ----- CRUD -----
    def retrieve(self, request, *args, **kwargs):
        return self.reponse_objet(self.get_object())

    def perform_create(self, serializer):
        user = self.request.user
        extra = {"created_by": user}
        for name in self.resource.user_defaults:
            if serializer.validated_data.get(name) is None:
                extra[name] = user
        serializer.save(**extra)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.perform_create(serializer)
        instance = self.recharger(serializer.instance)
        logger.info(f"[crud] {self.resource.label} {instance.numero} créé par {request.user}")
        return self.reponse_objet(
            instance,
            f"{self.resource.label} {self.resource.accord('créé')} avec succès",
            status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        instance = self.get_object()
        serializer = self.get_serializer(instance, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save(updated_by=request.user)
        return self.reponse_objet(
            self.recharger(instance),
            f"{self.resource.label} {self.resource.accord('mis')} à jour avec succès",
        )

    def partial_update(self, request, *args, **kwargs):
        return self.update(request, *args, **kwargs)

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        instance.archiver(request.user)
        logger.info(f"[crud] {self.resource.label} {instance.numero} archivé par {request.user}")
        return Response({
            "success": True,
            "message": f"{self.resource.label} {self.resource.accord('archivé')} avec succès",
        })
