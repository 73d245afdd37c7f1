import logging
from datetime import timedelta

from django.db.models import F, Sum
from django.utils import timezone
from rest_framework import serializers
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.response import Response

from common.crud import ResourceConfig, ResourceViewSet
from common.kpis import taux
from qhse.models import Formation, Incident, Risque
from qhse.serializers import FormationSerializer, IncidentSerializer, RisqueSerializer
from users.permissions import permission_requise

from .models import EPI, Hygiene, ProduitChimique
from .serializers import (
    EPISerializer,
    HygieneSerializer,
    MouvementEPISerializer,
    ProduitChimiqueSerializer,
    ResultatHygieneSerializer,
    RetourEPISerializer,
    UtilisationSerializer,
)

logger = logging.getLogger(__name__)

PERIODES = {"semaine": 7, "mois": 30, "trimestre": 91, "annee": 365}


# ----- Hygiene -----
class HygieneViewSet(ResourceViewSet):
    queryset = Hygiene.objects.all()
    serializer_class = HygieneSerializer
    resource = ResourceConfig(
        label="Contrôle d'hygiène",
        collection="hygiene",
        search_fields=("numero", "titre", "description", "zone"),
        populate_fields=("responsable",),
        permission="hse",
        user_defaults=("responsable",),
        default_ordering="-date_planification",
    )

    @action(detail=True, methods=["post"])
    def resultats(self, request, pk=None):
        hygiene = self.get_object()
        serializer = ResultatHygieneSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        hygiene.enregistrer_resultat(
            data["point"], request.user, data.get("statut"), data.get("valeur"), data["unite"], data["observations"]
        )
        return self.reponse_objet(self.recharger(hygiene), "Résultat enregistré avec succès")


# ----- EPI -----
class EPIViewSet(ResourceViewSet):
    queryset = EPI.objects.all()
    serializer_class = EPISerializer
    resource = ResourceConfig(
        label="EPI",
        collection="epis",
        search_fields=("numero", "nom", "description", "reference"),
        permission="hse",
    )

    @action(detail=True, methods=["post"])
    def dotation(self, request, pk=None):
        epi = self.get_object()
        serializer = MouvementEPISerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        epi.doter(data["employe"], data["quantite"], request.user, data["commentaire"])
        return self.reponse_objet(self.recharger(epi), "Dotation enregistrée avec succès")

    @action(detail=True, methods=["post"])
    def retour(self, request, pk=None):
        epi = self.get_object()
        serializer = RetourEPISerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        epi.retourner(data["employe"], data["quantite"], request.user, data["etat"], data["commentaire"])
        return self.reponse_objet(self.recharger(epi), "Retour enregistré avec succès")

    @action(detail=False, url_path="alertes-stock")
    def alertes_stock(self, request):
        items = self.actifs().filter(quantite_disponible__lte=F("seuil_alerte")).order_by("quantite_disponible", "pk")
        return self.reponse_collection(items)


# ----- Produits chimiques -----
class ProduitChimiqueViewSet(ResourceViewSet):
    queryset = ProduitChimique.objects.all()
    serializer_class = ProduitChimiqueSerializer
    resource = ResourceConfig(
        label="Produit chimique",
        collection="produits",
        search_fields=("numero", "nom", "nom_commercial", "reference"),
        permission="hse",
    )

    @action(detail=True, methods=["post"])
    def utilisation(self, request, pk=None):
        produit = self.get_object()
        serializer = UtilisationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        produit.enregistrer_utilisation(utilisateur=request.user, **serializer.validated_data)
        return self.reponse_objet(self.recharger(produit), "Utilisation enregistrée avec succès")

    @action(detail=False, url_path="alertes-stock")
    def alertes_stock(self, request):
        items = self.actifs().filter(quantite_disponible__lte=F("seuil_alerte")).order_by("quantite_disponible", "pk")
        return self.reponse_collection(items)

    @action(detail=False)
    def perimes(self, request):
        items = self.actifs().filter(date_peremption__lte=timezone.localdate()).order_by("date_peremption", "pk")
        return self.reponse_collection(items)


# ---------------------------------------------------------------------------
# Statistiques & tableau de bord
# ---------------------------------------------------------------------------
@api_view(["GET"])
@permission_classes([permission_requise("hse_read")])
def stats(request):
    periode = request.query_params.get("periode", "mois")
    if periode not in PERIODES:
        raise serializers.ValidationError({"periode": f"Période inconnue: {periode}"})
    debut = timezone.now() - timedelta(days=PERIODES[periode])

    incidents = Incident.objects.filter(is_archived=False)
    risques = Risque.objects.filter(is_archived=False)
    formations = Formation.objects.filter(is_archived=False)
    epis = EPI.objects.filter(is_archived=False)
    produits = ProduitChimique.objects.filter(is_archived=False)
    controles = Hygiene.objects.filter(is_archived=False)
    evalues = controles.exclude(evaluation="En attente")

    return Response({
        "success": True,
        "data": {
            "periode": periode,
            "incidents": {
                "total": incidents.count(),
                "ouverts": incidents.exclude(statut__in=["Résolu", "Fermé", "Clôturé"]).count(),
                "fermes": incidents.filter(statut__in=["Résolu", "Fermé", "Clôturé"]).count(),
                "periode": incidents.filter(date_incident__gte=debut).count(),
            },
            "risques": {
                "total": risques.count(),
                "eleves": risques.filter(niveau_risque__in=["Élevé", "Critique"]).count(),
            },
            "formations": {
                "total": formations.count(),
                "en_cours": formations.filter(statut="En cours").count(),
            },
            "epi": {
                "total": epis.count(),
                "alertes_stock": epis.filter(quantite_disponible__lte=F("seuil_alerte")).count(),
                "stock_disponible": epis.aggregate(v=Sum("quantite_disponible"))["v"] or 0,
            },
            "produits_chimiques": {
                "total": produits.count(),
                "alertes_stock": produits.filter(quantite_disponible__lte=F("seuil_alerte")).count(),
                "perimes": produits.filter(date_peremption__lte=timezone.localdate()).count(),
            },
            "hygiene": {
                "total": controles.count(),
                "realises": controles.filter(statut="Terminé").count(),
                "taux_conformite": taux(evalues.filter(evaluation="Conforme").count(), evalues.count()),
            },
        },
    })


@api_view(["GET"])
@permission_classes([permission_requise("hse_read")])
def dashboard(request):
    def recents(model, serializer_class):
        items = model.objects.filter(is_archived=False).order_by("-created_at", "-pk")[:5]
        return serializer_class(items, many=True, context={"request": request}).data

    return Response({
        "success": True,
        "data": {
            "incidents_recents": recents(Incident, IncidentSerializer),
            "risques_recents": recents(Risque, RisqueSerializer),
            "formations_recentes": recents(Formation, FormationSerializer),
            "alertes": {
                "epi_stock_faible": EPI.objects.filter(
                    is_archived=False, quantite_disponible__lte=F("seuil_alerte")
                ).count(),
                "produits_perimes": ProduitChimique.objects.filter(
                    is_archived=False, date_peremption__lte=timezone.localdate()
                ).count(),
            },
        },
    })
