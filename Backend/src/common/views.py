import os
from django.conf import settings
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import permissions


class PingView(APIView):
    """
    GET /api/ping -> {"pong": true}
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        return Response({"pong": True})


class InfoView(APIView):
    """
    GET /api/info -> infos minimales d'environnement (non sensibles)
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        return Response({
            "debug": bool(getattr(settings, "DEBUG", False)),
            "env": os.getenv("DJANGO_ENV", "local"),
            "version": settings.APP_VERSION,
        })


class RootInfoView(APIView):
    """GET / -> presentation de l'API et de ses points d'entree."""

    permission_classes = [permissions.AllowAny]

    def get(self, request):
        return Response({
            "message": f"{settings.APP_NAME} - Plateforme de gestion QHSE",
            "version": settings.APP_VERSION,
            "environment": os.getenv("DJANGO_ENV", "local"),
            "status": "running",
            "endpoints": {
                "auth": "/api/auth",
                "qhse": "/api/qhse",
                "qualite": "/api/qualite",
                "hse": "/api/hse",
                "laboratoire": "/api/laboratoire",
                "notifications": "/api/notifications",
                "dashboard": "/api/dashboard",
                "health": "/api/health",
            },
        })
