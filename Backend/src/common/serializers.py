import uuid

from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework.relations import PrimaryKeyRelatedField

STATUTS_ACTION = ["Planifiée", "En cours", "Terminée", "Vérifiée"]


class UtilisateurField(PrimaryKeyRelatedField):
    """Reference a un utilisateur: id en ecriture, fiche resumee en lecture."""

    def __init__(self, **kwargs):
        if not kwargs.get("read_only"):
            kwargs.setdefault("queryset", get_user_model().objects.all())
        super().__init__(**kwargs)

    def use_pk_only_optimization(self):
        return False

    def to_representation(self, value):
        return {"id": value.pk, "nom": value.nom, "prenom": value.prenom, "email": value.email}


class QhseModelSerializer(serializers.ModelSerializer):
    """
    Base des serializers d'entites: references utilisateur "peuplees",
    champs techniques en lecture seule.
    """

    created_by = UtilisateurField(read_only=True)
    updated_by = UtilisateurField(read_only=True)

    class Meta:
        fields = "__all__"
        read_only_fields = ("numero", "is_archived", "created_at", "updated_at", "historique")

    def get_fields(self):
        fields = super().get_fields()
        # references completees par la vue avec l'utilisateur courant
        for name in self.context.get("champs_utilisateur", ()):
            if name in fields:
                fields[name].required = False
        return fields

    def build_relational_field(self, field_name, relation_info):
        field_class, field_kwargs = super().build_relational_field(field_name, relation_info)
        if field_class is PrimaryKeyRelatedField and relation_info.related_model is get_user_model():
            field_class = UtilisateurField
        return field_class, field_kwargs


class SousDocumentSerializer(serializers.Serializer):
    """Element d'une liste JSON, identifie par un id stable."""

    id = serializers.CharField(required=False, max_length=32)

    def validate(self, attrs):
        attrs = super().validate(attrs)
        if not attrs.get("id"):
            attrs["id"] = uuid.uuid4().hex[:12]
        return attrs


class ActionSerializer(SousDocumentSerializer):
    description = serializers.CharField()
    responsable = serializers.IntegerField(required=False, allow_null=True)
    date_limite = serializers.DateField(required=False, allow_null=True)
    date_realisation = serializers.DateField(required=False, allow_null=True)
    statut = serializers.ChoiceField(choices=STATUTS_ACTION, default="Planifiée")
    efficacite = serializers.CharField(required=False, allow_blank=True)
    commentaire = serializers.CharField(required=False, allow_blank=True)
    cout = serializers.FloatField(required=False, min_value=0)


class DocumentSerializer(SousDocumentSerializer):
    type = serializers.CharField(required=False, allow_blank=True)
    nom = serializers.CharField()
    url = serializers.CharField(required=False, allow_blank=True)
    date_upload = serializers.DateTimeField(required=False)


class NoteSerializer(SousDocumentSerializer):
    contenu = serializers.CharField()
    auteur = serializers.IntegerField(required=False, allow_null=True)
    date = serializers.DateTimeField(required=False)
