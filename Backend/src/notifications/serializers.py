from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = "__all__"
        read_only_fields = ("lu", "lu_le", "cle", "created_at")
        extra_kwargs = {"destinataire": {"required": False}}
