from rest_framework.routers import SimpleRouter

from laboratoire.views import AnalyseViewSet, EchantillonViewSet, PlanControleViewSet
from qhse.views import ConformiteViewSet

from . import views

router = SimpleRouter(trailing_slash=False)
router.register("matieres-premieres", views.MatierePremiereViewSet, basename="matieres-premieres")
router.register("controles-qualite", views.ControleQualiteViewSet, basename="controles-qualite")
router.register("non-conformites", views.NonConformiteViewSet, basename="non-conformites")
router.register("decisions-qualite", views.DecisionQualiteViewSet, basename="decisions-qualite")
router.register("tracabilite", views.TracabiliteViewSet, basename="tracabilite")

# Vues partagees avec le laboratoire et le module QHSE
router.register("plans-controle", PlanControleViewSet, basename="qualite-plans-controle")
router.register("analyses", AnalyseViewSet, basename="qualite-analyses")
router.register("echantillons", EchantillonViewSet, basename="qualite-echantillons")
router.register("conformites", ConformiteViewSet, basename="qualite-conformites")

urlpatterns = router.urls
