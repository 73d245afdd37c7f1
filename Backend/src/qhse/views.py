import logging
from datetime import timedelta

from django.utils import timezone
from rest_framework import serializers
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.crud import ResourceConfig, ResourceViewSet
from common.utils import as_date
from users.permissions import permission_requise

from . import scoring, services
from .models import PRIORITES, Audit, Conformite, Formation, Incident, Risque
from .serializers import (
    AuditSerializer,
    ConformiteSerializer,
    FormationSerializer,
    IncidentSerializer,
    RisqueSerializer,
)

logger = logging.getLogger(__name__)

SEGMENT = r"[^/]+"


def jours_param(request, defaut: int = 30) -> int:
    try:
        return max(0, int(request.query_params.get("days", defaut)))
    except (TypeError, ValueError):
        raise serializers.ValidationError({"days": "Nombre de jours invalide"})


class FiltreParValeurMixin:
    """Routes de consultation "<champ>/<valeur>" sur les enregistrements actifs."""

    def par_valeur(self, champ: str, valeur: str):
        items = self.actifs().filter(**{champ: valeur}).order_by(self.resource.default_ordering, "-pk")
        return self.reponse_collection(items)


# ----- Audits -----
class AuditViewSet(FiltreParValeurMixin, ResourceViewSet):
    queryset = Audit.objects.all()
    serializer_class = AuditSerializer
    resource = ResourceConfig(
        label="Audit",
        collection="audits",
        search_fields=("numero", "titre", "description"),
        populate_fields=("auditeur_principal", "demandeur"),
        permission="audit",
        user_defaults=("demandeur", "auditeur_principal"),
    )

    @action(detail=False, url_path=rf"statut/(?P<statut>{SEGMENT})")
    def par_statut(self, request, statut=None):
        return self.par_valeur("statut", statut)

    @action(detail=False, url_path=rf"type/(?P<type_audit>{SEGMENT})")
    def par_type(self, request, type_audit=None):
        return self.par_valeur("type", type_audit)


# ----- Incidents -----
class IncidentViewSet(FiltreParValeurMixin, ResourceViewSet):
    queryset = Incident.objects.all()
    serializer_class = IncidentSerializer
    resource = ResourceConfig(
        label="Incident",
        collection="incidents",
        search_fields=("numero", "titre", "description"),
        populate_fields=("declarant",),
        permission="incident",
        user_defaults=("declarant",),
        default_ordering="-date_incident",
    )

    @action(detail=False, url_path=rf"gravite/(?P<gravite>{SEGMENT})")
    def par_gravite(self, request, gravite=None):
        return self.par_valeur("gravite", gravite)

    @action(detail=False, url_path=rf"type/(?P<type_incident>{SEGMENT})")
    def par_type(self, request, type_incident=None):
        return self.par_valeur("type", type_incident)

    @action(detail=True, methods=["post"])
    def fermer(self, request, pk=None):
        incident = self.get_object()
        incident.fermer(request.user, request.data.get("commentaire", ""))
        logger.info(f"[incident] {incident.numero} fermé par {request.user}")
        return self.reponse_objet(self.recharger(incident), "Incident fermé avec succès")

    @action(detail=True, methods=["post"])
    def cloturer(self, request, pk=None):
        incident = self.get_object()
        incident.cloturer(request.user, request.data.get("commentaire", ""))
        logger.info(f"[incident] {incident.numero} clôturé par {request.user}")
        return self.reponse_objet(self.recharger(incident), "Incident clôturé avec succès")


# ----- Risques -----
class RisqueViewSet(FiltreParValeurMixin, ResourceViewSet):
    queryset = Risque.objects.all()
    serializer_class = RisqueSerializer
    resource = ResourceConfig(
        label="Risque",
        collection="risques",
        search_fields=("numero", "titre", "description", "activite"),
        permission="risque",
        default_ordering="-score_risque",
    )

    @action(detail=False, url_path=rf"niveau/(?P<niveau>{SEGMENT})")
    def par_niveau(self, request, niveau=None):
        return self.par_valeur("niveau_risque", niveau)

    @action(detail=False, url_path=rf"categorie/(?P<categorie>{SEGMENT})")
    def par_categorie(self, request, categorie=None):
        return self.par_valeur("categorie", categorie)

    @action(detail=False)
    def matrice(self, request):
        """Risques regroupes par niveau + grille gravite x probabilite (5x5)."""
        risques = list(self.actifs().order_by("-score_risque", "-pk"))
        groupes = {"Critique": [], "Élevé": [], "Modéré": [], "Faible": []}
        grille = [[0] * len(scoring.PROBABILITES) for _ in scoring.GRAVITES]
        probabilites = list(scoring.PROBABILITES)
        gravites = list(scoring.GRAVITES)
        for risque in risques:
            groupes.setdefault(risque.niveau_risque, []).append(risque)
            if risque.probabilite in scoring.PROBABILITES and risque.gravite in scoring.GRAVITES:
                grille[gravites.index(risque.gravite)][probabilites.index(risque.probabilite)] += 1

        def resume(items):
            return self.get_serializer(items, many=True).data

        return Response({
            "success": True,
            "data": {
                "critique": resume(groupes["Critique"]),
                "eleve": resume(groupes["Élevé"]),
                "modere": resume(groupes["Modéré"]),
                "faible": resume(groupes["Faible"]),
                "grille": {"gravites": gravites, "probabilites": probabilites, "valeurs": grille},
                "total": len(risques),
            },
        })


# ----- Formations -----
class FormationViewSet(FiltreParValeurMixin, ResourceViewSet):
    queryset = Formation.objects.all()
    serializer_class = FormationSerializer
    resource = ResourceConfig(
        label="Formation",
        collection="formations",
        search_fields=("numero", "titre", "description"),
        permission="formation",
        default_ordering="-date_planification",
        feminin=True,
    )

    @action(detail=False, url_path=rf"type/(?P<type_formation>{SEGMENT})")
    def par_type(self, request, type_formation=None):
        return self.par_valeur("type", type_formation)

    @action(detail=False, url_path=rf"categorie/(?P<categorie>{SEGMENT})")
    def par_categorie(self, request, categorie=None):
        return self.par_valeur("categorie", categorie)

    @action(detail=False)
    def expirantes(self, request):
        jours = jours_param(request)
        items = services.formations_expirantes(jours).order_by("date_expiration", "pk")
        return self.reponse_collection(items, jours=jours)


# ----- Conformites -----
class ConformiteViewSet(FiltreParValeurMixin, ResourceViewSet):
    queryset = Conformite.objects.all()
    serializer_class = ConformiteSerializer
    resource = ResourceConfig(
        label="Conformité",
        collection="conformites",
        search_fields=("numero", "titre", "description"),
        permission="conformite",
        feminin=True,
    )

    @action(detail=False, url_path=rf"type/(?P<type_conformite>{SEGMENT})")
    def par_type(self, request, type_conformite=None):
        return self.par_valeur("type", type_conformite)

    @action(detail=False, url_path=rf"domaine/(?P<domaine>{SEGMENT})")
    def par_domaine(self, request, domaine=None):
        return self.par_valeur("domaine", domaine)

    @action(detail=False)
    def expirantes(self, request):
        jours = jours_param(request)
        items = services.conformites_expirantes(jours).order_by("prochaine_evaluation", "pk")
        return self.reponse_collection(items, jours=jours)

    @action(detail=False, url_path="non-conformes")
    def non_conformes(self, request):
        return self.par_valeur("statut_conformite", "Non conforme")


# ---------------------------------------------------------------------------
# Actions correctives (toutes sources confondues)
# ---------------------------------------------------------------------------
@api_view(["GET"])
@permission_classes([IsAuthenticated])
def actions_correctives(request, statut=None):
    actions = list(services.lister_actions(statut))
    return Response({"success": True, "actions": actions, "total": len(actions)})


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def actions_en_retard(request):
    actions = services.actions_en_retard()
    return Response({"success": True, "actions": actions, "total": len(actions)})


@api_view(["PUT", "PATCH"])
@permission_classes([permission_requise("incident_write")])
def mettre_a_jour_action(request, incident_id, action_id):
    incident = Incident.objects.filter(pk=incident_id).first()
    if incident is None:
        raise NotFound("Incident non trouvé")
    action_maj = services.mettre_a_jour_action(incident, action_id, request.data, request.user)
    return Response({"success": True, "data": action_maj, "message": "Action corrective mise à jour avec succès"})


# ---------------------------------------------------------------------------
# Statistiques & configuration
# ---------------------------------------------------------------------------
@api_view(["GET"])
@permission_classes([IsAuthenticated])
def stats(request):
    return Response({"success": True, "data": services.statistiques_qhse()})


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def stats_etendues(request):
    return Response({"success": True, "data": services.statistiques_etendues()})


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def stats_periode(request):
    aujourd_hui = timezone.localdate()
    debut = as_date(request.query_params.get("debut")) or aujourd_hui - timedelta(days=30)
    fin = as_date(request.query_params.get("fin")) or aujourd_hui
    if fin < debut:
        raise serializers.ValidationError({"fin": "La date de fin doit être postérieure à la date de début"})
    return Response({"success": True, "data": services.statistiques_periode(debut, fin)})


def _valeurs(choices):
    return [valeur for valeur, _ in choices]


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def config(request):
    """Enumerations utilisees par les formulaires du front."""
    return Response({
        "success": True,
        "data": {
            "audits": {
                "types": _valeurs(Audit.TYPES),
                "domaines": _valeurs(Audit.DOMAINES),
                "statuts": _valeurs(Audit.STATUTS),
                "priorites": _valeurs(Audit.PRIORITES),
                "referentiels": _valeurs(Audit.REFERENTIELS),
            },
            "incidents": {
                "types": _valeurs(Incident.TYPES),
                "categories": _valeurs(Incident.CATEGORIES),
                "gravites": _valeurs(Incident.GRAVITES),
                "urgences": _valeurs(Incident.URGENCES),
                "statuts": _valeurs(Incident.STATUTS),
            },
            "risques": {
                "categories": _valeurs(Risque.CATEGORIES),
                "probabilites": list(scoring.PROBABILITES),
                "gravites": list(scoring.GRAVITES),
                "niveaux": list(scoring.NIVEAUX_RISQUE),
                "statuts": _valeurs(Risque.STATUTS),
            },
            "formations": {
                "categories": _valeurs(Formation.CATEGORIES),
                "lieux": _valeurs(Formation.LIEUX),
                "statuts": _valeurs(Formation.STATUTS),
            },
            "conformites": {
                "types": _valeurs(Conformite.TYPES),
                "statuts": _valeurs(Conformite.STATUTS),
                "niveaux": list(scoring.SCORES_CONFORMITE),
            },
            "priorites": _valeurs(PRIORITES),
        },
    })
