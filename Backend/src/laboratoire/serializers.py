from rest_framework import serializers

from common.serializers import DocumentSerializer, QhseModelSerializer, SousDocumentSerializer

from .models import Analyse, Echantillon, PlanControle


class EchantillonSerializer(QhseModelSerializer):
    documents = DocumentSerializer(many=True, required=False)
    nb_analyses = serializers.SerializerMethodField()

    class Meta(QhseModelSerializer.Meta):
        model = Echantillon
        read_only_fields = QhseModelSerializer.Meta.read_only_fields + ("decision_qualite",)

    def get_nb_analyses(self, obj) -> int:
        return obj.analyses.filter(is_archived=False).count()

    def validate_poids_net(self, value):
        if value < 0:
            raise serializers.ValidationError("Le poids net doit être positif")
        return value


class ActionDecisionSerializer(SousDocumentSerializer):
    type = serializers.ChoiceField(choices=["Libération", "Blocage", "Réanalyse", "Retrait"])
    description = serializers.CharField(required=False, allow_blank=True)
    responsable = serializers.IntegerField(required=False, allow_null=True)
    date_limite = serializers.DateField(required=False, allow_null=True)


class DecisionEchantillonSerializer(serializers.Serializer):
    statut = serializers.ChoiceField(choices=["En attente", "Validé", "Rejeté", "Sous réserve"])
    commentaire = serializers.CharField(required=False, allow_blank=True, default="")
    actions = ActionDecisionSerializer(many=True, required=False, default=list)


class DonneeBruteSerializer(SousDocumentSerializer):
    parametre = serializers.CharField(required=False, allow_blank=True)
    valeur = serializers.FloatField()
    unite = serializers.CharField(required=False, allow_blank=True)
    methode = serializers.CharField(required=False, allow_blank=True)


class AnalyseSerializer(QhseModelSerializer):
    donnees_brutes = DonneeBruteSerializer(many=True, required=False)
    documents = DocumentSerializer(many=True, required=False)
    echantillon_numero = serializers.CharField(source="echantillon.numero", read_only=True)

    class Meta(QhseModelSerializer.Meta):
        model = Analyse

    def validate(self, attrs):
        seuil_min = attrs.get("seuil_min", getattr(self.instance, "seuil_min", None))
        seuil_max = attrs.get("seuil_max", getattr(self.instance, "seuil_max", None))
        if seuil_min is not None and seuil_max is not None and seuil_max < seuil_min:
            raise serializers.ValidationError({"seuil_max": "Le seuil maximum doit être supérieur au seuil minimum"})
        return attrs


class AnalyseEchantillonSerializer(AnalyseSerializer):
    """Creation d'une analyse depuis son echantillon (echantillon impose par l'URL)."""

    echantillon = serializers.PrimaryKeyRelatedField(read_only=True)


class ResultatSerializer(serializers.Serializer):
    valeur = serializers.FloatField()
    unite = serializers.CharField(required=False, allow_blank=True)
    commentaire = serializers.CharField(required=False, allow_blank=True, default="")
    donnees_brutes = DonneeBruteSerializer(many=True, required=False)


class PointControleSerializer(SousDocumentSerializer):
    nom = serializers.CharField()
    description = serializers.CharField(required=False, allow_blank=True)
    type = serializers.ChoiceField(
        choices=[
            "Visuel", "Organoleptique", "Physico-chimique", "Microbiologique", "Mesure", "Test", "Vérification",
            "Autre",
        ]
    )
    methode = serializers.CharField(required=False, allow_blank=True)
    appareil = serializers.CharField(required=False, allow_blank=True)
    unite = serializers.CharField(required=False, allow_blank=True)
    seuil_min = serializers.FloatField(required=False, allow_null=True)
    seuil_max = serializers.FloatField(required=False, allow_null=True)
    tolerance = serializers.FloatField(required=False, allow_null=True)
    obligatoire = serializers.BooleanField(default=True)
    frequence = serializers.ChoiceField(
        choices=["Chaque lot", "Aléatoire", "Quotidien", "Hebdomadaire", "Mensuel", "Sur demande"],
        default="Chaque lot",
    )


class PlanControleSerializer(QhseModelSerializer):
    points_controle = PointControleSerializer(many=True, required=False)
    documents = DocumentSerializer(many=True, required=False)
    nb_points_obligatoires = serializers.IntegerField(read_only=True)

    class Meta(QhseModelSerializer.Meta):
        model = PlanControle
        read_only_fields = QhseModelSerializer.Meta.read_only_fields + ("version", "date_revision")
