from rest_framework import serializers

from common.serializers import (
    ActionSerializer,
    DocumentSerializer,
    NoteSerializer,
    QhseModelSerializer,
    SousDocumentSerializer,
)

from .models import Audit, Conformite, Formation, Incident, Risque


def _verifier_periode(attrs, instance, debut="date_debut", fin="date_fin"):
    d = attrs.get(debut, getattr(instance, debut, None))
    f = attrs.get(fin, getattr(instance, fin, None))
    if d and f and f < d:
        raise serializers.ValidationError({fin: "La date de fin doit être postérieure à la date de début"})


# ----- Audit -----
class CritereAuditSerializer(SousDocumentSerializer):
    nom = serializers.CharField()
    exigence = serializers.CharField(required=False, allow_blank=True)
    statut = serializers.ChoiceField(
        choices=["Conforme", "Non conforme", "Observation", "Non applicable"], default="Non applicable"
    )
    commentaire = serializers.CharField(required=False, allow_blank=True)
    preuve = serializers.CharField(required=False, allow_blank=True)


class ConstatationSerializer(SousDocumentSerializer):
    type = serializers.ChoiceField(
        choices=["Conformité", "Non-conformité", "Observation", "Opportunité d'amélioration"]
    )
    description = serializers.CharField()
    gravite = serializers.ChoiceField(choices=["Mineure", "Majeure", "Critique"], required=False)
    statut = serializers.ChoiceField(choices=["Ouverte", "En cours", "Fermée", "Vérifiée"], default="Ouverte")
    critere = serializers.CharField(required=False, allow_blank=True)


class AuditSerializer(QhseModelSerializer):
    criteres = CritereAuditSerializer(many=True, required=False)
    constatations = ConstatationSerializer(many=True, required=False)
    actions_correctives = ActionSerializer(many=True, required=False)
    documents = DocumentSerializer(many=True, required=False)
    notes = NoteSerializer(many=True, required=False)
    est_en_retard = serializers.BooleanField(read_only=True)

    class Meta(QhseModelSerializer.Meta):
        model = Audit

    def validate(self, attrs):
        _verifier_periode(attrs, self.instance)
        return attrs


# ----- Incident -----
class PersonneImpliqueeSerializer(SousDocumentSerializer):
    nom = serializers.CharField()
    prenom = serializers.CharField(required=False, allow_blank=True)
    role = serializers.ChoiceField(choices=["Victime", "Témoin", "Responsable", "Intervenant"])
    blessures = serializers.ChoiceField(
        choices=["Aucune", "Légères", "Modérées", "Graves", "Fatales"], default="Aucune"
    )


class CauseSerializer(SousDocumentSerializer):
    type = serializers.ChoiceField(choices=["Humaine", "Technique", "Organisationnelle", "Environnementale"])
    description = serializers.CharField()


class IncidentSerializer(QhseModelSerializer):
    personnes_impliquees = PersonneImpliqueeSerializer(many=True, required=False)
    causes = CauseSerializer(many=True, required=False)
    actions_immediates = ActionSerializer(many=True, required=False)
    actions_correctives = ActionSerializer(many=True, required=False)
    actions_preventives = ActionSerializer(many=True, required=False)
    documents = DocumentSerializer(many=True, required=False)
    notes = NoteSerializer(many=True, required=False)
    est_critique = serializers.BooleanField(read_only=True)

    class Meta(QhseModelSerializer.Meta):
        model = Incident

    def validate(self, attrs):
        _verifier_periode(attrs, self.instance, "date_declaration", "date_resolution")
        return attrs


# ----- Risque -----
class PersonneExposeeSerializer(SousDocumentSerializer):
    categorie = serializers.CharField()
    nombre = serializers.IntegerField(min_value=0, required=False)
    exposition = serializers.ChoiceField(choices=["Directe", "Indirecte", "Occasionnelle"], required=False)
    frequence = serializers.ChoiceField(
        choices=["Ponctuelle", "Occasionnelle", "Fréquente", "Permanente"], required=False
    )


class MesureSerializer(SousDocumentSerializer):
    description = serializers.CharField()
    type = serializers.CharField(required=False, allow_blank=True)
    priorite = serializers.ChoiceField(choices=["Basse", "Normale", "Haute", "Critique"], required=False)
    responsable = serializers.IntegerField(required=False, allow_null=True)
    date_echeance = serializers.DateField(required=False, allow_null=True)
    statut = serializers.ChoiceField(
        choices=["En place", "À améliorer", "À mettre en place", "À faire", "En cours", "Terminé", "En retard"],
        required=False,
    )
    efficacite = serializers.ChoiceField(choices=["Faible", "Modérée", "Bonne", "Excellente"], required=False)


class RisqueSerializer(QhseModelSerializer):
    personnes_exposees = PersonneExposeeSerializer(many=True, required=False)
    mesures_existantes = MesureSerializer(many=True, required=False)
    mesures_correctives = MesureSerializer(many=True, required=False)

    class Meta(QhseModelSerializer.Meta):
        model = Risque


# ----- Formation -----
class ParticipantSerializer(SousDocumentSerializer):
    utilisateur = serializers.IntegerField(required=False, allow_null=True)
    nom = serializers.CharField()
    prenom = serializers.CharField(required=False, allow_blank=True)
    statut = serializers.ChoiceField(choices=["Inscrit", "Présent", "Absent", "Terminé"], default="Inscrit")
    note = serializers.FloatField(min_value=0, max_value=20, required=False, allow_null=True)
    certificat = serializers.DictField(required=False)


class CoutsSerializer(serializers.Serializer):
    formation = serializers.FloatField(min_value=0, required=False)
    materiel = serializers.FloatField(min_value=0, required=False)
    deplacement = serializers.FloatField(min_value=0, required=False)
    hebergement = serializers.FloatField(min_value=0, required=False)
    total = serializers.FloatField(read_only=True)


class FormationSerializer(QhseModelSerializer):
    participants = ParticipantSerializer(many=True, required=False)
    couts = CoutsSerializer(required=False)
    places_restantes = serializers.IntegerField(read_only=True)

    class Meta(QhseModelSerializer.Meta):
        model = Formation

    def validate(self, attrs):
        _verifier_periode(attrs, self.instance)
        capacite = attrs.get("capacite", getattr(self.instance, "capacite", None))
        participants = attrs.get("participants")
        if capacite is not None and participants is not None and len(participants) > capacite:
            raise serializers.ValidationError({"participants": "Capacité de la formation dépassée"})
        return attrs


# ----- Conformite -----
class ActionConformiteSerializer(SousDocumentSerializer):
    description = serializers.CharField()
    type = serializers.ChoiceField(
        choices=["Mise en place", "Amélioration", "Correction", "Formation", "Documentation", "Audit"],
        required=False,
    )
    priorite = serializers.ChoiceField(choices=["Basse", "Normale", "Haute", "Critique"], default="Normale")
    responsable = serializers.IntegerField(required=False, allow_null=True)
    date_echeance = serializers.DateField(required=False, allow_null=True)
    statut = serializers.ChoiceField(choices=["À faire", "En cours", "Terminé", "En retard"], default="À faire")


class CertificationSerializer(SousDocumentSerializer):
    nom = serializers.CharField()
    organisme = serializers.CharField(required=False, allow_blank=True)
    numero = serializers.CharField(required=False, allow_blank=True)
    date_obtention = serializers.DateField(required=False, allow_null=True)
    date_expiration = serializers.DateField(required=False, allow_null=True)
    statut = serializers.ChoiceField(
        choices=["Valide", "Expiré", "En cours de renouvellement", "Suspendu", "Révoqué"], default="Valide"
    )


class ConformiteSerializer(QhseModelSerializer):
    actions_conformite = ActionConformiteSerializer(many=True, required=False)
    certifications = CertificationSerializer(many=True, required=False)
    documents = DocumentSerializer(many=True, required=False)

    class Meta(QhseModelSerializer.Meta):
        model = Conformite
