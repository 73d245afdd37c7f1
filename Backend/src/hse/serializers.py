from django.contrib.auth import get_user_model
from rest_framework import serializers

from common.serializers import ActionSerializer, DocumentSerializer, QhseModelSerializer, SousDocumentSerializer

from .models import EPI, Hygiene, ProduitChimique


# ----- Hygiene -----
class PointHygieneSerializer(SousDocumentSerializer):
    nom = serializers.CharField()
    statut = serializers.ChoiceField(choices=Hygiene.STATUTS_POINT, default="En attente")
    observations = serializers.CharField(required=False, allow_blank=True, default="")
    unite = serializers.CharField(required=False, allow_blank=True)
    seuil_min = serializers.FloatField(required=False, allow_null=True)
    seuil_max = serializers.FloatField(required=False, allow_null=True)
    valeur = serializers.FloatField(required=False, allow_null=True)


class HygieneSerializer(QhseModelSerializer):
    points_controle = PointHygieneSerializer(many=True, required=False)
    actions = ActionSerializer(many=True, required=False)

    class Meta(QhseModelSerializer.Meta):
        model = Hygiene


class ResultatHygieneSerializer(serializers.Serializer):
    point = serializers.CharField()
    statut = serializers.ChoiceField(choices=Hygiene.STATUTS_POINT, required=False)
    valeur = serializers.FloatField(required=False, allow_null=True)
    unite = serializers.CharField(required=False, allow_blank=True, default="")
    observations = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if attrs.get("statut") is None and attrs.get("valeur") is None:
            raise serializers.ValidationError("Un statut ou une valeur est requis")
        return attrs


# ----- EPI -----
class RisqueProtegeSerializer(SousDocumentSerializer):
    type = serializers.ChoiceField(
        choices=[
            "Chocs", "Projections", "Poussières", "Vapeurs", "Gaz", "Bruit", "Chaleur", "Froid", "Chutes",
            "Coupures", "Brûlures", "Autre",
        ]
    )
    niveau = serializers.ChoiceField(choices=["Faible", "Modéré", "Élevé", "Critique"], required=False)


class MaintenanceSerializer(SousDocumentSerializer):
    type = serializers.ChoiceField(choices=["Inspection", "Nettoyage", "Réparation", "Remplacement", "Test"])
    date = serializers.DateField()
    responsable = serializers.IntegerField(required=False, allow_null=True)
    resultat = serializers.ChoiceField(
        choices=["Conforme", "Non conforme", "À réparer", "À remplacer"], required=False
    )
    commentaire = serializers.CharField(required=False, allow_blank=True)
    prochaine_maintenance = serializers.DateField(required=False, allow_null=True)


class EPISerializer(QhseModelSerializer):
    risques_proteges = RisqueProtegeSerializer(many=True, required=False)
    maintenance = MaintenanceSerializer(many=True, required=False)
    documents = DocumentSerializer(many=True, required=False)
    est_en_alerte_stock = serializers.BooleanField(read_only=True)

    class Meta(QhseModelSerializer.Meta):
        model = EPI


class MouvementEPISerializer(serializers.Serializer):
    employe = serializers.PrimaryKeyRelatedField(queryset=get_user_model().objects.filter(is_active=True))
    quantite = serializers.IntegerField(min_value=1)
    commentaire = serializers.CharField(required=False, allow_blank=True, default="")


class RetourEPISerializer(MouvementEPISerializer):
    etat = serializers.ChoiceField(choices=["Bon", "Endommagé", "Perdu"], default="Bon")


# ----- Produits chimiques -----
class ProduitChimiqueSerializer(QhseModelSerializer):
    documents_securite = DocumentSerializer(many=True, required=False)
    est_en_alerte_stock = serializers.BooleanField(read_only=True)
    est_perime = serializers.BooleanField(read_only=True)

    class Meta(QhseModelSerializer.Meta):
        model = ProduitChimique

    def validate(self, attrs):
        if attrs.get("quantite_totale", 0) < 0 or attrs.get("seuil_alerte", 0) < 0:
            raise serializers.ValidationError({"quantite_totale": "Les quantités doivent être positives"})
        return attrs


class UtilisationSerializer(serializers.Serializer):
    quantite = serializers.FloatField(min_value=0.001)
    zone = serializers.CharField(required=False, allow_blank=True, default="")
    objectif = serializers.CharField(required=False, allow_blank=True, default="")
    commentaire = serializers.CharField(required=False, allow_blank=True, default="")
