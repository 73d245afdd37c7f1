from django.urls import path
from rest_framework.routers import SimpleRouter

from . import views

router = SimpleRouter(trailing_slash=False)
router.register("echantillons", views.EchantillonViewSet, basename="echantillons")
router.register("analyses", views.AnalyseViewSet, basename="analyses")
router.register("plans-controle", views.PlanControleViewSet, basename="plans-controle")

urlpatterns = [
    path("stats", views.stats, name="laboratoire_stats"),
] + router.urls
