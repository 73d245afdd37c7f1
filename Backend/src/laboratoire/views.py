import logging

from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.response import Response

from common.crud import ResourceConfig, ResourceViewSet
from common.kpis import taux
from users.permissions import permission_requise

from .models import Analyse, Echantillon, PlanControle
from .serializers import (
    AnalyseEchantillonSerializer,
    AnalyseSerializer,
    DecisionEchantillonSerializer,
    EchantillonSerializer,
    PlanControleSerializer,
    ResultatSerializer,
)

logger = logging.getLogger(__name__)


# ----- Echantillons -----
class EchantillonViewSet(ResourceViewSet):
    queryset = Echantillon.objects.all()
    serializer_class = EchantillonSerializer
    resource = ResourceConfig(
        label="Échantillon",
        collection="echantillons",
        search_fields=("numero", "numero_lot", "produit_nom", "code_barres"),
        populate_fields=("responsable_prelevement",),
        permission="laboratoire",
        user_defaults=("responsable_prelevement",),
        default_ordering="-date_prelevement",
    )

    @action(detail=True, methods=["get", "post"])
    def analyses(self, request, pk=None):
        echantillon = self.get_object()
        if request.method == "GET":
            items = echantillon.analyses.filter(is_archived=False).select_related("created_by", "technicien")
            data = AnalyseSerializer(items, many=True, context=self.get_serializer_context()).data
            return Response({"success": True, "analyses": data, "total": len(data)})

        serializer = AnalyseEchantillonSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        analyse = serializer.save(echantillon=echantillon, created_by=request.user)
        if echantillon.statut == "Reçu":
            echantillon.refresh_from_db()
            echantillon.statut = "En attente d'analyse"
            echantillon.ajouter_historique("Analyse", f"Analyse {analyse.numero} planifiée", request.user)
            echantillon.save()
        logger.info(f"[labo] analyse {analyse.numero} ajoutée à {echantillon.numero}")
        return Response(
            {
                "success": True,
                "data": AnalyseSerializer(analyse, context=self.get_serializer_context()).data,
                "message": "Analyse créée avec succès",
            },
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["post"], url_path="decision-qualite")
    def decision_qualite(self, request, pk=None):
        echantillon = self.get_object()
        serializer = DecisionEchantillonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        echantillon.decision_qualite = {
            **serializer.validated_data,
            "decideur": request.user.pk,
            "date_decision": timezone.now(),
        }
        echantillon.updated_by = request.user
        echantillon.ajouter_historique(
            "Décision qualité", serializer.validated_data["statut"], request.user
        )
        echantillon.save()
        logger.info(f"[labo] décision {serializer.validated_data['statut']} sur {echantillon.numero}")
        return self.reponse_objet(self.recharger(echantillon), "Décision qualité enregistrée")


# ----- Analyses -----
class AnalyseViewSet(ResourceViewSet):
    queryset = Analyse.objects.all()
    serializer_class = AnalyseSerializer
    resource = ResourceConfig(
        label="Analyse",
        collection="analyses",
        search_fields=("numero", "nom", "description"),
        populate_fields=("echantillon", "technicien", "plan_controle"),
        permission="laboratoire",
        default_ordering="-date_planification",
        feminin=True,
    )

    @action(detail=True, methods=["post"])
    def resultats(self, request, pk=None):
        analyse = self.get_object()
        serializer = ResultatSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        extra = {k: data[k] for k in ("unite", "donnees_brutes") if k in data}
        analyse.enregistrer_resultats(request.user, data["valeur"], data.get("commentaire", ""), **extra)
        return self.reponse_objet(self.recharger(analyse), "Résultats enregistrés avec succès")

    @action(detail=True, methods=["post"])
    def valider(self, request, pk=None):
        analyse = self.get_object()
        analyse.valider(request.user, request.data.get("commentaire", ""))
        return self.reponse_objet(self.recharger(analyse), "Analyse validée avec succès")

    @action(detail=True, methods=["post"])
    def rejeter(self, request, pk=None):
        analyse = self.get_object()
        analyse.rejeter(request.user, request.data.get("commentaire", ""))
        return self.reponse_objet(self.recharger(analyse), "Analyse rejetée")


# ----- Plans de controle -----
class PlanControleViewSet(ResourceViewSet):
    queryset = PlanControle.objects.all()
    serializer_class = PlanControleSerializer
    resource = ResourceConfig(
        label="Plan de contrôle",
        collection="plans",
        search_fields=("numero", "nom", "description"),
        populate_fields=("responsable",),
        permission="laboratoire",
        user_defaults=("responsable",),
    )

    @action(detail=True, methods=["post"])
    def activer(self, request, pk=None):
        plan = self.get_object()
        plan.activer(request.user, request.data.get("commentaire", ""))
        return self.reponse_objet(self.recharger(plan), "Plan de contrôle activé")

    @action(detail=True, methods=["post"])
    def approuver(self, request, pk=None):
        plan = self.get_object()
        plan.approuver(request.user, request.data.get("commentaire", ""))
        return self.reponse_objet(self.recharger(plan), "Plan de contrôle approuvé")

    @action(detail=True, methods=["post"], url_path="nouvelle-version")
    def nouvelle_version(self, request, pk=None):
        plan = self.get_object()
        version = plan.nouvelle_version(
            request.user, request.data.get("modifications", ""), request.data.get("raison", "")
        )
        return self.reponse_objet(self.recharger(plan), f"Version {version} créée")

    @action(detail=True)
    def checklist(self, request, pk=None):
        plan = self.get_object()
        points = plan.checklist()
        return Response({
            "success": True,
            "data": {
                "plan": plan.numero,
                "version": plan.version,
                "points": points,
                "total": len(points),
                "obligatoires": plan.nb_points_obligatoires,
            },
        })


@api_view(["GET"])
@permission_classes([permission_requise("laboratoire_read")])
def stats(request):
    echantillons = Echantillon.objects.filter(is_archived=False)
    analyses = Analyse.objects.filter(is_archived=False)
    plans = PlanControle.objects.filter(is_archived=False)

    nb_echantillons = echantillons.count()
    conformes = echantillons.filter(conformite="Conforme").count()
    nb_analyses = analyses.count()
    validees = analyses.filter(statut="Validée").count()

    return Response({
        "success": True,
        "data": {
            "echantillons": {
                "total": nb_echantillons,
                "conformes": conformes,
                "non_conformes": echantillons.filter(conformite="Non conforme").count(),
                "taux_conformite": taux(conformes, nb_echantillons),
            },
            "analyses": {
                "total": nb_analyses,
                "terminees": analyses.filter(statut="Terminée").count(),
                "validees": validees,
                "taux_reussite": taux(validees, nb_analyses),
            },
            "plans_controle": {
                "total": plans.count(),
                "actifs": plans.filter(statut="Actif").count(),
            },
        },
    })
