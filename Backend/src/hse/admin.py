from django.contrib import admin

from common.admin import QhseModelAdmin

from .models import EPI, Hygiene, ProduitChimique


@admin.register(Hygiene)
class HygieneAdmin(QhseModelAdmin):
    list_display = ("numero", "titre", "zone", "type", "date_planification", "statut", "evaluation")
    list_filter = ("statut", "type", "evaluation")
    search_fields = ("numero", "titre", "zone")
    readonly_fields = QhseModelAdmin.readonly_fields + ("score", "evaluation")


@admin.register(EPI)
class EPIAdmin(QhseModelAdmin):
    list_display = ("numero", "nom", "type", "quantite_totale", "quantite_disponible", "seuil_alerte", "statut")
    list_filter = ("type", "categorie", "statut")
    search_fields = ("numero", "nom", "reference")
    readonly_fields = QhseModelAdmin.readonly_fields + ("quantite_disponible", "dotations")


@admin.register(ProduitChimique)
class ProduitChimiqueAdmin(QhseModelAdmin):
    list_display = ("numero", "nom", "type", "etat", "quantite_disponible", "unite", "date_peremption", "statut")
    list_filter = ("type", "etat", "statut")
    search_fields = ("numero", "nom", "nom_commercial")
    readonly_fields = QhseModelAdmin.readonly_fields + ("quantite_disponible", "utilisations")
