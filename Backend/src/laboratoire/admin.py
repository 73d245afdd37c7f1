from django.contrib import admin

from common.admin import QhseModelAdmin

from .models import Analyse, Echantillon, PlanControle


class AnalyseInline(admin.TabularInline):
    model = Analyse
    fields = ("numero", "nom", "statut", "valeur", "statut_resultat")
    readonly_fields = fields
    extra = 0
    show_change_link = True
    can_delete = False


@admin.register(Echantillon)
class EchantillonAdmin(QhseModelAdmin):
    list_display = ("numero", "produit_nom", "numero_lot", "type_echantillon", "statut", "conformite")
    list_filter = ("statut", "conformite", "type_echantillon", "is_archived")
    search_fields = ("numero", "numero_lot", "produit_nom", "code_barres")
    readonly_fields = QhseModelAdmin.readonly_fields + ("code_barres", "qr_code", "score", "conformite")
    inlines = [AnalyseInline]


@admin.register(Analyse)
class AnalyseAdmin(QhseModelAdmin):
    list_display = ("numero", "nom", "echantillon", "critere", "valeur", "statut_resultat", "statut")
    list_filter = ("statut", "statut_resultat", "type")
    search_fields = ("numero", "nom")


@admin.register(PlanControle)
class PlanControleAdmin(QhseModelAdmin):
    list_display = ("numero", "nom", "type", "version", "statut", "frequence")
    list_filter = ("statut", "type")
    search_fields = ("numero", "nom")
