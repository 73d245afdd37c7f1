from django.contrib import admin

from common.admin import QhseModelAdmin

from .models import Audit, Conformite, Formation, Incident, Risque


@admin.register(Audit)
class AuditAdmin(QhseModelAdmin):
    list_display = ("numero", "titre", "type", "statut", "date_planification", "score", "is_archived")
    list_filter = ("statut", "type", "domaine", "is_archived")
    search_fields = ("numero", "titre")


@admin.register(Incident)
class IncidentAdmin(QhseModelAdmin):
    list_display = ("numero", "titre", "type", "gravite", "statut", "date_incident", "is_archived")
    list_filter = ("gravite", "statut", "categorie", "is_archived")
    search_fields = ("numero", "titre")


@admin.register(Risque)
class RisqueAdmin(QhseModelAdmin):
    list_display = ("numero", "titre", "probabilite", "gravite", "score_risque", "niveau_risque")
    list_filter = ("niveau_risque", "categorie", "is_archived")
    search_fields = ("numero", "titre", "activite")


@admin.register(Formation)
class FormationAdmin(QhseModelAdmin):
    list_display = ("numero", "titre", "type", "statut", "date_planification", "date_expiration")
    list_filter = ("statut", "type", "is_archived")


@admin.register(Conformite)
class ConformiteAdmin(QhseModelAdmin):
    list_display = ("numero", "titre", "type", "statut_conformite", "niveau_conformite", "prochaine_evaluation")
    list_filter = ("statut_conformite", "domaine", "is_archived")
