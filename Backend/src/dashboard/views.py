import logging

from rest_framework import serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from users.permissions import permission_requise

from . import services

logger = logging.getLogger(__name__)

LIMITE_MAX = 50


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def dashboard_global(request):
    return Response({"success": True, "data": services.tableau_global()})


@api_view(["GET"])
@permission_classes([permission_requise("laboratoire_read")])
def dashboard_laboratoire(request):
    return Response({"success": True, "data": services.tableau_laboratoire()})


@api_view(["GET"])
@permission_classes([permission_requise("qualite_read")])
def dashboard_qualite(request):
    return Response({"success": True, "data": services.tableau_qualite()})


@api_view(["GET"])
@permission_classes([permission_requise("hse_read")])
def dashboard_hse(request):
    return Response({"success": True, "data": services.tableau_hse()})


class ActivitesRecentesView(APIView):
    """
    GET /api/activities/recent?limit=10 -> derniers enregistrements crees
    (laboratoire, qualite, QHSE, HSE).
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        try:
            limite = int(request.query_params.get("limit", 10))
        except (TypeError, ValueError):
            raise serializers.ValidationError({"limit": "Limite invalide"})
        limite = min(max(limite, 1), LIMITE_MAX)
        activites = services.activites_recentes(limite)
        return Response({"success": True, "activities": activites, "total": len(activites)})
