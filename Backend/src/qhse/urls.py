from django.urls import path
from rest_framework.routers import SimpleRouter

from . import views

router = SimpleRouter(trailing_slash=False)
router.register("audits", views.AuditViewSet, basename="audits")
router.register("incidents", views.IncidentViewSet, basename="incidents")
router.register("risques", views.RisqueViewSet, basename="risques")
router.register("formations", views.FormationViewSet, basename="formations")
router.register("conformites", views.ConformiteViewSet, basename="conformites")

urlpatterns = [
    # Actions correctives (audits, incidents, non-conformites)
    path("actions-correctives", views.actions_correctives, name="actions_correctives"),
    path("actions-correctives/statut/<str:statut>", views.actions_correctives, name="actions_correctives_statut"),
    path("actions-correctives/retard", views.actions_en_retard, name="actions_correctives_retard"),
    path(
        "actions-correctives/<int:incident_id>/<str:action_id>",
        views.mettre_a_jour_action,
        name="action_corrective_maj",
    ),

    # Statistiques
    path("stats", views.stats, name="qhse_stats"),
    path("stats/etendues", views.stats_etendues, name="qhse_stats_etendues"),
    path("stats/periode", views.stats_periode, name="qhse_stats_periode"),
    path("config", views.config, name="qhse_config"),
] + router.urls
