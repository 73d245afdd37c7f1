from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("titre", "type", "module", "priorite", "destinataire", "lu", "created_at")
    list_filter = ("type", "module", "priorite", "lu")
    search_fields = ("titre", "message")
    readonly_fields = ("cle", "lu_le", "created_at")
