from django.urls import path
from rest_framework.routers import SimpleRouter

from qhse.views import FormationViewSet, IncidentViewSet, RisqueViewSet

from . import views

router = SimpleRouter(trailing_slash=False)
router.register("hygiene", views.HygieneViewSet, basename="hygiene")
router.register("epi", views.EPIViewSet, basename="epi")
router.register("produits-chimiques", views.ProduitChimiqueViewSet, basename="produits-chimiques")

# Vues partagees avec le module QHSE
router.register("incidents", IncidentViewSet, basename="hse-incidents")
router.register("risques", RisqueViewSet, basename="hse-risques")
router.register("formations", FormationViewSet, basename="hse-formations")

urlpatterns = [
    path("stats", views.stats, name="hse_stats"),
    path("dashboard", views.dashboard, name="hse_dashboard"),
] + router.urls
