import logging

from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.crud import filtres_depuis_params
from users.permissions import GESTIONNAIRES, proprietaire

from . import services
from .models import Notification
from .serializers import NotificationSerializer

logger = logging.getLogger(__name__)

# module est un texte libre en base mais se filtre a l'identique
FILTRES_EXACTS = {"module": "module"}


class NotificationViewSet(viewsets.ModelViewSet):
    """
    Notifications de l'utilisateur connecte. Seules entites supprimees
    physiquement: elles n'ont pas de valeur de tracabilite.
    """

    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated, proprietaire("destinataire")]
    lookup_value_regex = r"\d+"
    http_method_names = ["get", "post", "delete", "head", "options"]

    def get_queryset(self):
        return Notification.objects.filter(destinataire=self.request.user)

    def get_object(self):
        # les routes de detail cherchent dans toutes les notifications:
        # celle d'un autre utilisateur donne 403, pas 404
        notification = Notification.objects.filter(pk=self.kwargs["pk"]).first()
        if notification is None:
            raise NotFound("Notification non trouvée")
        self.check_object_permissions(self.request, notification)
        return notification

    def list(self, request, *args, **kwargs):
        qs = self.get_queryset().filter(filtres_depuis_params(Notification, request.query_params, FILTRES_EXACTS))
        data = self.get_serializer(qs, many=True).data
        return Response({
            "success": True,
            "notifications": data,
            "total": len(data),
            "non_lues": sum(1 for n in data if not n["lu"]),
        })

    def retrieve(self, request, *args, **kwargs):
        return Response({"success": True, "data": self.get_serializer(self.get_object()).data})

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        destinataire = serializer.validated_data.get("destinataire")
        if destinataire is None or request.user.role not in GESTIONNAIRES:
            destinataire = request.user
        notification = serializer.save(destinataire=destinataire)
        return Response(
            {"success": True, "data": self.get_serializer(notification).data, "message": "Notification créée"},
            status=status.HTTP_201_CREATED,
        )

    def destroy(self, request, *args, **kwargs):
        self.get_object().delete()
        return Response({"success": True, "message": "Notification supprimée"})

    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        notification = self.get_object()
        notification.marquer_lue()
        return Response({"success": True, "data": self.get_serializer(notification).data})

    @action(detail=False, methods=["post"], url_path="read-all")
    def read_all(self, request):
        nombre = self.get_queryset().filter(lu=False).update(lu=True, lu_le=timezone.now())
        return Response({"success": True, "message": f"{nombre} notification(s) marquée(s) comme lue(s)"})

    @action(detail=False, methods=["delete"], url_path="read")
    def purger_lues(self, request):
        nombre, _ = self.get_queryset().filter(lu=True).delete()
        return Response({"success": True, "message": f"{nombre} notification(s) supprimée(s)"})

    @action(detail=False, methods=["post"])
    def generer(self, request):
        nouvelles = services.generer_pour(request.user)
        data = self.get_serializer(nouvelles, many=True).data
        return Response(
            {"success": True, "notifications": data, "total": len(data)},
            status=status.HTTP_201_CREATED if nouvelles else status.HTTP_200_OK,
        )
