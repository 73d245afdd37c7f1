from rest_framework import serializers

from common.serializers import ActionSerializer, DocumentSerializer, QhseModelSerializer, SousDocumentSerializer
from qhse.serializers import CauseSerializer

from .models import ControleQualite, DecisionQualite, MatierePremiere, NonConformite, Tracabilite


# ----- Matieres premieres -----
class ControleLotSerializer(SousDocumentSerializer):
    type = serializers.CharField()
    resultat = serializers.ChoiceField(choices=["Conforme", "Non conforme", "En attente"], default="En attente")
    date = serializers.DateTimeField(required=False)
    commentaire = serializers.CharField(required=False, allow_blank=True)


class LotSerializer(SousDocumentSerializer):
    numero_lot = serializers.CharField()
    date_reception = serializers.DateTimeField(required=False)
    quantite = serializers.FloatField(min_value=0)
    unite = serializers.CharField(required=False, allow_blank=True)
    date_fabrication = serializers.DateField(required=False, allow_null=True)
    date_peremption = serializers.DateField(required=False, allow_null=True)
    statut = serializers.ChoiceField(
        choices=["En stock", "Utilisé", "Périmé", "Rejeté", "Retiré"], default="En stock"
    )
    controles = ControleLotSerializer(many=True, required=False)
    decision_qualite = serializers.ChoiceField(
        choices=["Accepté", "Accepté sous réserve", "Refusé", "En attente"], default="En attente"
    )


class CertificatSerializer(SousDocumentSerializer):
    type = serializers.CharField()
    numero = serializers.CharField(required=False, allow_blank=True)
    organisme = serializers.CharField(required=False, allow_blank=True)
    date_emission = serializers.DateField(required=False, allow_null=True)
    date_expiration = serializers.DateField(required=False, allow_null=True)


class MatierePremiereSerializer(QhseModelSerializer):
    lots = LotSerializer(many=True, required=False)
    certificats = CertificatSerializer(many=True, required=False)
    documents = DocumentSerializer(many=True, required=False)
    quantite_en_stock = serializers.FloatField(read_only=True)

    class Meta(QhseModelSerializer.Meta):
        model = MatierePremiere

    def validate(self, attrs):
        minimum = attrs.get("stock_minimum", getattr(self.instance, "stock_minimum", None))
        maximum = attrs.get("stock_maximum", getattr(self.instance, "stock_maximum", None))
        if minimum is not None and maximum is not None and maximum < minimum:
            raise serializers.ValidationError({"stock_maximum": "Le stock maximum doit être supérieur au minimum"})
        return attrs


# ----- Controles qualite -----
class CritereControleSerializer(SousDocumentSerializer):
    nom = serializers.CharField()
    description = serializers.CharField(required=False, allow_blank=True)
    type = serializers.ChoiceField(
        choices=["Visuel", "Mesure", "Test", "Analyse", "Documentaire"], required=False
    )
    unite = serializers.CharField(required=False, allow_blank=True)
    seuil_min = serializers.FloatField(required=False, allow_null=True)
    seuil_max = serializers.FloatField(required=False, allow_null=True)
    methode = serializers.CharField(required=False, allow_blank=True)
    obligatoire = serializers.BooleanField(default=True)

    def validate(self, attrs):
        attrs = super().validate(attrs)
        seuil_min, seuil_max = attrs.get("seuil_min"), attrs.get("seuil_max")
        if seuil_min is not None and seuil_max is not None and seuil_max < seuil_min:
            raise serializers.ValidationError({"seuil_max": "Le seuil maximum doit être supérieur au seuil minimum"})
        return attrs


class ResultatControleSerializer(serializers.Serializer):
    critere = serializers.CharField()
    valeur = serializers.FloatField()
    unite = serializers.CharField(required=False, allow_blank=True, default="")
    commentaire = serializers.CharField(required=False, allow_blank=True, default="")


class ControleQualiteSerializer(QhseModelSerializer):
    criteres = CritereControleSerializer(many=True, required=False)
    actions_correctives = ActionSerializer(many=True, required=False)
    documents = DocumentSerializer(many=True, required=False)

    class Meta(QhseModelSerializer.Meta):
        model = ControleQualite

    def validate(self, attrs):
        debut = attrs.get("date_debut", getattr(self.instance, "date_debut", None))
        fin = attrs.get("date_fin", getattr(self.instance, "date_fin", None))
        if debut and fin and fin < debut:
            raise serializers.ValidationError({"date_fin": "La date de fin doit être postérieure à la date de début"})
        return attrs


# ----- Non-conformites -----
class CauseNonConformiteSerializer(CauseSerializer):
    type = serializers.ChoiceField(
        choices=["Humaine", "Technique", "Organisationnelle", "Environnementale", "Fournisseur"]
    )
    probabilite = serializers.ChoiceField(choices=["Faible", "Moyenne", "Élevée"], required=False)
    validee = serializers.BooleanField(default=False)


class PourquoiSerializer(SousDocumentSerializer):
    niveau = serializers.IntegerField(min_value=1, max_value=5)
    question = serializers.CharField(required=False, allow_blank=True)
    reponse = serializers.CharField()
    cause_racine = serializers.BooleanField(default=False)


class AmdecSerializer(SousDocumentSerializer):
    mode_defaillance = serializers.CharField()
    effet = serializers.CharField(required=False, allow_blank=True)
    cause = serializers.CharField(required=False, allow_blank=True)
    gravite = serializers.IntegerField(min_value=1, max_value=10)
    occurrence = serializers.IntegerField(min_value=1, max_value=10)
    detection = serializers.IntegerField(min_value=1, max_value=10)
    criticite = serializers.IntegerField(read_only=True)


class NonConformiteSerializer(QhseModelSerializer):
    causes = CauseNonConformiteSerializer(many=True, required=False)
    analyse_cinq_pourquoi = PourquoiSerializer(many=True, required=False)
    amdec = AmdecSerializer(many=True, required=False)
    actions_immediates = ActionSerializer(many=True, required=False)
    actions_correctives = ActionSerializer(many=True, required=False)
    actions_preventives = ActionSerializer(many=True, required=False)
    documents = DocumentSerializer(many=True, required=False)
    est_en_retard = serializers.BooleanField(read_only=True)

    class Meta(QhseModelSerializer.Meta):
        model = NonConformite


class FermetureSerializer(serializers.Serializer):
    commentaire = serializers.CharField(required=False, allow_blank=True, default="")
    efficacite_globale = serializers.ChoiceField(
        choices=["Efficace", "Partiellement efficace", "Inefficace"], default="Efficace"
    )


# ----- Decisions qualite -----
class DecisionQualiteSerializer(QhseModelSerializer):
    documents = DocumentSerializer(many=True, required=False)
    matiere_premiere_numero = serializers.CharField(source="matiere_premiere.numero", read_only=True, allow_null=True)

    class Meta(QhseModelSerializer.Meta):
        model = DecisionQualite
        read_only_fields = QhseModelSerializer.Meta.read_only_fields + ("statut",)

    def validate_justification(self, value):
        if not value.strip():
            raise serializers.ValidationError("La justification est requise")
        return value


# ----- Tracabilite -----
class LienSerializer(SousDocumentSerializer):
    type = serializers.ChoiceField(choices=["Amont", "Aval", "Transformation", "Contrôle"])
    element_type = serializers.ChoiceField(
        choices=["Matière première", "Produit fini", "Lot", "Échantillon", "Contrôle qualité"]
    )
    element_id = serializers.CharField()
    quantite = serializers.FloatField(min_value=0, required=False, allow_null=True)
    unite = serializers.CharField(required=False, allow_blank=True)
    commentaire = serializers.CharField(required=False, allow_blank=True)


class RappelSerializer(serializers.Serializer):
    raison = serializers.CharField()
    type = serializers.ChoiceField(choices=["Rappel produit", "Retrait", "Blocage"], default="Rappel produit")
    quantite = serializers.FloatField(min_value=0, required=False, allow_null=True)
    unite = serializers.CharField(required=False, allow_blank=True, default="")


class TracabiliteSerializer(QhseModelSerializer):
    documents = DocumentSerializer(many=True, required=False)

    class Meta(QhseModelSerializer.Meta):
        model = Tracabilite
