import logging

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.response import Response

from common.crud import ResourceConfig, ResourceViewSet

from .models import ControleQualite, DecisionQualite, MatierePremiere, NonConformite, Tracabilite
from .serializers import (
    ControleQualiteSerializer,
    DecisionQualiteSerializer,
    FermetureSerializer,
    LienSerializer,
    LotSerializer,
    MatierePremiereSerializer,
    NonConformiteSerializer,
    RappelSerializer,
    ResultatControleSerializer,
    TracabiliteSerializer,
)

logger = logging.getLogger(__name__)


# ----- Matieres premieres -----
class MatierePremiereViewSet(ResourceViewSet):
    queryset = MatierePremiere.objects.all()
    serializer_class = MatierePremiereSerializer
    resource = ResourceConfig(
        label="Matière première",
        collection="matieres_premieres",
        search_fields=("numero", "nom", "description", "fournisseur_nom", "reference"),
        filter_fields={"fournisseur": "fournisseur_nom__iregex", "type": "type_matiere"},
        permission="qualite",
        feminin=True,
    )

    @action(detail=True, methods=["post"])
    def lots(self, request, pk=None):
        matiere = self.get_object()
        serializer = LotSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        lot = matiere.ajouter_lot(dict(serializer.validated_data), request.user)
        logger.info(f"[qualite] lot {lot['numero_lot']} reçu pour {matiere.numero}")
        return self.reponse_objet(self.recharger(matiere), "Lot ajouté avec succès", status.HTTP_201_CREATED)

    @action(detail=True)
    def statistiques(self, request, pk=None):
        return Response({"success": True, "data": self.get_object().statistiques()})

    @action(detail=True)
    def alertes(self, request, pk=None):
        alertes = self.get_object().alertes()
        return Response({"success": True, "alertes": alertes, "total": len(alertes)})


# ----- Controles qualite -----
class ControleQualiteViewSet(ResourceViewSet):
    queryset = ControleQualite.objects.all()
    serializer_class = ControleQualiteSerializer
    resource = ResourceConfig(
        label="Contrôle qualité",
        collection="controles",
        search_fields=("numero", "titre", "description"),
        populate_fields=("controleur", "plan_controle"),
        permission="qualite",
        user_defaults=("controleur",),
        default_ordering="-date_planification",
    )

    @action(detail=True, methods=["post"])
    def resultats(self, request, pk=None):
        controle = self.get_object()
        serializer = ResultatControleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        controle.ajouter_resultat(
            data["critere"], data["valeur"], request.user, data["unite"], data["commentaire"]
        )
        return self.reponse_objet(self.recharger(controle), "Résultat ajouté avec succès")


# ----- Non-conformites -----
class NonConformiteViewSet(ResourceViewSet):
    queryset = NonConformite.objects.all()
    serializer_class = NonConformiteSerializer
    resource = ResourceConfig(
        label="Non-conformité",
        collection="non_conformites",
        search_fields=("numero", "titre", "description"),
        populate_fields=("detecteur",),
        permission="qualite",
        user_defaults=("detecteur",),
        default_ordering="-date_detection",
        feminin=True,
    )

    @action(detail=True, methods=["post"])
    def fermer(self, request, pk=None):
        nc = self.get_object()
        serializer = FermetureSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        nc.fermer(request.user, **serializer.validated_data)
        logger.info(f"[qualite] non-conformité {nc.numero} fermée par {request.user}")
        return self.reponse_objet(self.recharger(nc), "Non-conformité fermée avec succès")

    @action(detail=True, methods=["post"])
    def cloturer(self, request, pk=None):
        nc = self.get_object()
        nc.cloturer(request.user, request.data.get("commentaire", ""))
        logger.info(f"[qualite] non-conformité {nc.numero} clôturée par {request.user}")
        return self.reponse_objet(self.recharger(nc), "Non-conformité clôturée avec succès")

    @action(detail=True)
    def ishikawa(self, request, pk=None):
        nc = self.get_object()
        return Response({
            "success": True,
            "data": {
                "probleme": nc.titre,
                "branches": nc.ishikawa(),
                "causes_racines": nc.causes_racines(),
            },
        })

    @action(detail=False, url_path="en-retard")
    def en_retard(self, request):
        ouvertes = self.actifs().exclude(statut__in=("Fermée", "Clôturée")).order_by("-date_detection", "-pk")
        return self.reponse_collection([nc for nc in ouvertes if nc.est_en_retard])


# ----- Decisions qualite -----
class DecisionQualiteViewSet(ResourceViewSet):
    queryset = DecisionQualite.objects.all()
    serializer_class = DecisionQualiteSerializer
    resource = ResourceConfig(
        label="Décision qualité",
        collection="decisions",
        search_fields=("numero", "titre", "description", "justification"),
        populate_fields=("decisionnaire", "matiere_premiere", "controle_qualite", "non_conformite"),
        permission="qualite",
        user_defaults=("decisionnaire",),
        default_ordering="-date_decision",
        feminin=True,
    )

    @action(detail=True, methods=["post"])
    def valider(self, request, pk=None):
        decision = self.get_object()
        decision.valider(request.user, request.data.get("commentaire", ""))
        return self.reponse_objet(self.recharger(decision), "Décision validée avec succès")

    @action(detail=True, methods=["post"])
    def rejeter(self, request, pk=None):
        decision = self.get_object()
        decision.rejeter(request.user, request.data.get("commentaire", ""))
        return self.reponse_objet(self.recharger(decision), "Décision rejetée")

    @action(detail=True, methods=["post"])
    def appliquer(self, request, pk=None):
        decision = self.get_object()
        decision.appliquer(request.user, request.data.get("commentaire", ""))
        logger.info(f"[qualite] décision {decision.numero} ({decision.type}) appliquée")
        return self.reponse_objet(self.recharger(decision), "Décision appliquée")


# ----- Tracabilite -----
class TracabiliteViewSet(ResourceViewSet):
    queryset = Tracabilite.objects.all()
    serializer_class = TracabiliteSerializer
    resource = ResourceConfig(
        label="Traçabilité",
        collection="tracabilites",
        search_fields=("numero", "reference", "nom", "lot"),
        prefetch_fields=("non_conformites",),
        permission="qualite",
        feminin=True,
    )

    @action(detail=True, methods=["post"])
    def rappel(self, request, pk=None):
        element = self.get_object()
        serializer = RappelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        element.simuler_rappel(
            request.user, data["raison"], data["type"], data.get("quantite"), data["unite"]
        )
        logger.warning(f"[qualite] rappel déclenché sur {element.numero} (lot {element.lot or '-'})")
        return self.reponse_objet(self.recharger(element), "Rappel enregistré")

    @action(detail=True)
    def verification(self, request, pk=None):
        element = self.get_object()
        return Response({
            "success": True,
            "data": {**element.verification(), "chaine": element.chaine()},
        })

    @action(detail=True, methods=["post"])
    def liens(self, request, pk=None):
        element = self.get_object()
        serializer = LienSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        element.ajouter_lien(request.user, dict(serializer.validated_data))
        return self.reponse_objet(self.recharger(element), "Lien ajouté avec succès", status.HTTP_201_CREATED)
