from django.contrib import admin

from .models import Sequence


@admin.register(Sequence)
class SequenceAdmin(admin.ModelAdmin):
    list_display = ("prefix", "annee", "valeur")
    list_filter = ("annee",)


class QhseModelAdmin(admin.ModelAdmin):
    """Admin de base des entites numerotees."""

    list_display = ("numero", "__str__", "is_archived", "created_at")
    list_filter = ("is_archived",)
    search_fields = ("numero",)
    readonly_fields = ("numero", "created_at", "updated_at", "created_by", "updated_by")
    ordering = ("-created_at",)
