from django.conf import settings
from django.db import models
from django.utils import timezone

from common.exceptions import TransitionInvalide
from common.models import QhseModel, choix, json_dict, json_list
from common.utils import as_datetime

from . import scoring

PRIORITES = choix("Basse", "Normale", "Haute", "Critique")
DOMAINES_QHSE = choix("Sécurité", "Qualité", "Environnement", "Hygiène", "Santé", "Mixte")


class Audit(QhseModel):
    """
    Audit interne ou externe.

    Le score et la conclusion sont deduits des criteres evalues et des
    constatations a chaque sauvegarde.
    """

    NUMERO_PREFIX = "AUD"
    NUMERO_WIDTH = 3

    TYPES = choix("Interne", "Externe", "Certification", "Surveillance", "Suivi")
    DOMAINES = choix("Qualité", "Sécurité", "Environnement", "Hygiène", "Mixte")
    STATUTS = choix("Planifié", "En cours", "Terminé", "Annulé", "Reporté")
    PRIORITES = choix("Faible", "Normale", "Élevée", "Critique")
    REFERENTIELS = choix("ISO 9001", "ISO 14001", "ISO 45001", "ISO 22000", "HACCP", "BRC", "IFS", "Personnalisé")
    CONCLUSIONS = choix("Conforme", "Conforme avec réserves", "Non conforme", "À améliorer")

    titre = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    type = models.CharField(max_length=32, choices=TYPES)
    domaine = models.CharField(max_length=32, choices=DOMAINES)
    referentiel = models.CharField(max_length=32, choices=REFERENTIELS, default="Personnalisé")

    # Planning
    date_planification = models.DateField()
    date_debut = models.DateField(null=True, blank=True)
    date_fin = models.DateField(null=True, blank=True)
    duree_estimee = models.PositiveIntegerField(default=8, help_text="heures")

    statut = models.CharField(max_length=32, choices=STATUTS, default="Planifié", db_index=True)
    priorite = models.CharField(max_length=16, choices=PRIORITES, default="Normale")

    # Equipe
    auditeur_principal = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")
    demandeur = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")
    auditeurs = json_list()
    perimetre = json_dict()

    # Evaluation
    criteres = json_list()
    constatations = json_list()
    actions_correctives = json_list()

    # Resultats (calcules)
    nb_conformites = models.PositiveIntegerField(default=0, editable=False)
    nb_non_conformites = models.PositiveIntegerField(default=0, editable=False)
    nb_observations = models.PositiveIntegerField(default=0, editable=False)
    score = models.PositiveSmallIntegerField(null=True, blank=True, editable=False)
    conclusion = models.CharField(max_length=32, choices=CONCLUSIONS, blank=True, default="", editable=False)
    recommandations = json_list()

    documents = json_list()
    notes = json_list()
    historique = json_list()

    class Meta(QhseModel.Meta):
        verbose_name = "Audit"

    def _compter_constatations(self):
        if self.constatations:
            types = [c.get("type") for c in self.constatations]
            return (
                types.count("Conformité"),
                types.count("Non-conformité"),
                types.count("Observation"),
            )
        statuts = [c.get("statut") for c in self.criteres]
        return statuts.count("Conforme"), statuts.count("Non conforme"), statuts.count("Observation")

    def calculer_champs_derives(self) -> None:
        if not (self.criteres or self.constatations):
            return
        self.nb_conformites, self.nb_non_conformites, self.nb_observations = self._compter_constatations()
        if self.criteres:
            self.score = scoring.score_audit(c.get("statut") for c in self.criteres)
        self.conclusion = scoring.conclusion_audit(self.nb_non_conformites, self.nb_observations)

    def champs_derives(self):
        return ("nb_conformites", "nb_non_conformites", "nb_observations", "score", "conclusion")

    @property
    def est_en_retard(self) -> bool:
        return self.statut == "Planifié" and self.date_planification < timezone.localdate()


class Incident(QhseModel):
    """Incident, accident ou presqu'accident declare sur site."""

    NUMERO_PREFIX = "INC"

    TYPES = choix(
        "Accident", "Incident", "Presqu'accident", "Maladie", "Accident du travail",
        "Accident de trajet", "Maladie professionnelle", "Incident environnemental",
        "Incident qualité", "Incident sécurité", "Autre",
    )
    CATEGORIES = choix("Sécurité", "Qualité", "Environnement", "Hygiène", "Santé")
    GRAVITES = choix("Légère", "Modérée", "Grave", "Critique")
    URGENCES = choix("Faible", "Modérée", "Élevée", "Immédiate")
    STATUTS = choix(
        "Déclaré", "En cours d'investigation", "En cours de traitement", "Résolu", "Fermé", "Clôturé",
    )

    titre = models.CharField(max_length=200)
    description = models.TextField()
    type = models.CharField(max_length=32, choices=TYPES)
    categorie = models.CharField(max_length=32, choices=CATEGORIES, default="Sécurité")
    gravite = models.CharField(max_length=16, choices=GRAVITES, db_index=True)
    urgence = models.CharField(max_length=16, choices=URGENCES, default="Modérée")

    date_incident = models.DateTimeField()
    date_declaration = models.DateTimeField(default=timezone.now)
    date_resolution = models.DateTimeField(null=True, blank=True)
    delai_resolution = models.PositiveIntegerField(null=True, blank=True, editable=False, help_text="heures")

    localisation = json_dict()
    personnes_impliquees = json_list()
    causes = json_list()

    # Impacts
    nb_blesses = models.PositiveIntegerField(default=0)
    jours_arret = models.PositiveIntegerField(default=0)
    cout_materiel = models.FloatField(default=0)
    cout_arret = models.FloatField(default=0)
    cout_total = models.FloatField(default=0, editable=False)
    impacts = json_dict()

    actions_immediates = json_list()
    actions_correctives = json_list()
    actions_preventives = json_list()
    investigation = json_dict()

    statut = models.CharField(max_length=32, choices=STATUTS, default="Déclaré", db_index=True)
    priorite = models.CharField(max_length=16, choices=PRIORITES, default="Normale")
    declarant = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )

    documents = json_list()
    notes = json_list()
    historique = json_list()

    class Meta(QhseModel.Meta):
        verbose_name = "Incident"

    def calculer_champs_derives(self) -> None:
        self.cout_total = (self.cout_materiel or 0) + (self.cout_arret or 0)
        debut, fin = as_datetime(self.date_declaration), as_datetime(self.date_resolution)
        if debut and fin:
            self.delai_resolution = max(0, round((fin - debut).total_seconds() / 3600))
        else:
            self.delai_resolution = None

    def champs_derives(self):
        return ("cout_total", "delai_resolution")

    @property
    def est_critique(self) -> bool:
        return self.gravite == "Critique" or self.urgence == "Immédiate"

    def fermer(self, utilisateur, commentaire: str = "") -> None:
        if self.statut in ("Fermé", "Clôturé"):
            raise TransitionInvalide(f"Incident déjà {self.statut.lower()}")
        self.statut = "Fermé"
        self.date_resolution = self.date_resolution or timezone.now()
        self.updated_by = utilisateur
        self.ajouter_historique("Fermeture", commentaire or "Incident fermé", utilisateur)
        self.save()

    def cloturer(self, utilisateur, commentaire: str = "") -> None:
        if self.statut == "Clôturé":
            raise TransitionInvalide("Incident déjà clôturé")
        self.statut = "Clôturé"
        self.date_resolution = self.date_resolution or timezone.now()
        self.updated_by = utilisateur
        self.ajouter_historique("Clôture", commentaire or "Incident clôturé", utilisateur)
        self.save()


class Risque(QhseModel):
    """Risque evalue: score = probabilite x gravite (1..25)."""

    NUMERO_PREFIX = "RISK"

    CATEGORIES = choix(
        "Risque chimique", "Risque biologique", "Risque physique", "Risque ergonomique",
        "Risque psychosocial", "Risque environnemental", "Autre",
    )
    PROBABILITES = choix(*scoring.PROBABILITES)
    GRAVITES = choix(*scoring.GRAVITES)
    NIVEAUX = choix(*scoring.NIVEAUX_RISQUE)
    STATUTS = choix("Actif", "Maîtrisé", "En cours de traitement", "Archivé")

    titre = models.CharField(max_length=200)
    description = models.TextField()
    type = models.CharField(max_length=32, choices=DOMAINES_QHSE)
    categorie = models.CharField(max_length=32, choices=CATEGORIES)
    probabilite = models.CharField(max_length=16, choices=PROBABILITES)
    gravite = models.CharField(max_length=16, choices=GRAVITES)
    score_risque = models.PositiveSmallIntegerField(default=1, editable=False)
    niveau_risque = models.CharField(max_length=16, choices=NIVEAUX, default="Faible", editable=False, db_index=True)

    localisation = json_dict()
    activite = models.CharField(max_length=200)
    poste_travail = models.CharField(max_length=200, blank=True, default="")
    equipement = models.CharField(max_length=200, blank=True, default="")
    personnes_exposees = json_list()
    mesures_existantes = json_list()
    mesures_correctives = json_list()

    date_evaluation = models.DateField(default=timezone.localdate)
    prochaine_evaluation = models.DateField(null=True, blank=True)
    statut = models.CharField(max_length=32, choices=STATUTS, default="Actif")
    historique = json_list()

    class Meta(QhseModel.Meta):
        verbose_name = "Risque"

    def calculer_champs_derives(self) -> None:
        if self.probabilite and self.gravite:
            self.score_risque, self.niveau_risque = scoring.evaluer_risque(self.probabilite, self.gravite)

    def champs_derives(self):
        return ("score_risque", "niveau_risque")


class Formation(QhseModel):
    NUMERO_PREFIX = "FORM"

    CATEGORIES = choix(
        "Formation initiale", "Formation continue", "Recyclage", "Formation spécifique", "Sensibilisation",
    )
    LIEUX = choix("Interne", "Externe", "Virtuel")
    STATUTS = choix("Planifiée", "En cours", "Terminée", "Annulée", "Reportée")

    titre = models.CharField(max_length=200)
    description = models.TextField()
    type = models.CharField(max_length=32, choices=DOMAINES_QHSE)
    categorie = models.CharField(max_length=32, choices=CATEGORIES)
    objectifs = json_list()
    programme = json_list()
    prerequis = json_list()
    supports = json_list()

    date_planification = models.DateField()
    date_debut = models.DateField(null=True, blank=True)
    date_fin = models.DateField(null=True, blank=True)
    # fin de validite de la formation (recyclage a prevoir)
    date_expiration = models.DateField(null=True, blank=True, db_index=True)
    duree = models.FloatField(help_text="heures")
    horaires = json_dict()
    lieu = models.CharField(max_length=16, choices=LIEUX)
    adresse = json_dict()
    salle = models.CharField(max_length=100, blank=True, default="")
    capacite = models.PositiveIntegerField(null=True, blank=True)

    formateur = json_dict()
    participants = json_list()
    couts = json_dict()
    evaluation_formation = json_dict()

    statut = models.CharField(max_length=16, choices=STATUTS, default="Planifiée")
    priorite = models.CharField(max_length=16, choices=PRIORITES, default="Normale")
    references_reglementaires = json_list()
    rappels = json_list()

    class Meta(QhseModel.Meta):
        verbose_name = "Formation"

    def calculer_champs_derives(self) -> None:
        if self.couts:
            self.couts = {**self.couts, "total": scoring.somme_couts(self.couts)}

    def champs_derives(self):
        return ("couts",)

    @property
    def places_restantes(self):
        if self.capacite is None:
            return None
        return max(0, self.capacite - len(self.participants or []))


class Conformite(QhseModel):
    """Exigence reglementaire ou normative suivie par evaluations periodiques."""

    NUMERO_PREFIX = "CONF"

    TYPES = choix("Législation", "Réglementation", "Norme", "Certification", "Accréditation", "Autorisation")
    STATUTS = choix(
        "Conforme", "Non conforme", "En cours de mise en conformité", "Non applicable", "À évaluer",
    )
    NIVEAUX = choix(*scoring.SCORES_CONFORMITE)

    titre = models.CharField(max_length=200)
    description = models.TextField()
    type = models.CharField(max_length=32, choices=TYPES)
    domaine = models.CharField(max_length=32, choices=DOMAINES_QHSE)
    reference = json_dict()
    obligations = json_list()
    applicabilite = json_dict()

    statut_conformite = models.CharField(max_length=40, choices=STATUTS, default="À évaluer", db_index=True)
    niveau_conformite = models.CharField(max_length=16, choices=NIVEAUX, default="Acceptable")
    score_conformite = models.PositiveSmallIntegerField(null=True, blank=True, editable=False)

    derniere_evaluation = json_dict()
    prochaine_evaluation = models.DateField(null=True, blank=True, db_index=True)
    actions_conformite = json_list()
    documents = json_list()
    certifications = json_list()
    risques_non_conformite = json_list()
    historique = json_list()

    class Meta(QhseModel.Meta):
        verbose_name = "Conformité"

    def calculer_champs_derives(self) -> None:
        if self.niveau_conformite:
            self.score_conformite = scoring.score_conformite(self.niveau_conformite)

    def champs_derives(self):
        return ("score_conformite",)
