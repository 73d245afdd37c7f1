from django.contrib import admin

from common.admin import QhseModelAdmin

from .models import ControleQualite, DecisionQualite, MatierePremiere, NonConformite, Tracabilite


@admin.register(MatierePremiere)
class MatierePremiereAdmin(QhseModelAdmin):
    list_display = ("numero", "nom", "fournisseur_nom", "type_matiere", "statut")
    list_filter = ("statut", "type_matiere", "is_archived")
    search_fields = ("numero", "nom", "fournisseur_nom", "reference")


@admin.register(ControleQualite)
class ControleQualiteAdmin(QhseModelAdmin):
    list_display = ("numero", "titre", "type", "date_planification", "statut", "score", "evaluation")
    list_filter = ("statut", "type", "evaluation")
    search_fields = ("numero", "titre")
    readonly_fields = QhseModelAdmin.readonly_fields + ("resultats", "score", "evaluation")


@admin.register(NonConformite)
class NonConformiteAdmin(QhseModelAdmin):
    list_display = ("numero", "titre", "categorie", "gravite", "statut", "date_detection")
    list_filter = ("statut", "categorie", "gravite", "type")
    search_fields = ("numero", "titre", "description")
    readonly_fields = QhseModelAdmin.readonly_fields + ("cout_total", "fermeture", "delai_resolution")


@admin.register(DecisionQualite)
class DecisionQualiteAdmin(QhseModelAdmin):
    list_display = ("numero", "titre", "type", "contexte_type", "statut", "date_decision")
    list_filter = ("statut", "type", "contexte_type")
    search_fields = ("numero", "titre", "justification")
    readonly_fields = QhseModelAdmin.readonly_fields + ("validation",)


@admin.register(Tracabilite)
class TracabiliteAdmin(QhseModelAdmin):
    list_display = ("numero", "reference", "nom", "lot", "type", "statut")
    list_filter = ("statut", "type")
    search_fields = ("numero", "reference", "lot")
    readonly_fields = QhseModelAdmin.readonly_fields + ("liens", "rappels")
    filter_horizontal = ("non_conformites",)
