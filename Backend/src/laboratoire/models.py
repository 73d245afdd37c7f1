import secrets

from django.conf import settings
from django.db import models
from django.utils import timezone

from common.exceptions import TransitionInvalide
from common.kpis import stddev_pop, taux
from common.models import QhseModel, choix, json_dict, json_list
from common.utils import to_number

from . import controles

PRIORITES = choix("Faible", "Normale", "Élevée", "Critique")


def _code_unique(prefixe: str) -> str:
    """<PREFIXE>-<horodatage ms>-<5 caracteres aleatoires>"""
    horodatage = int(timezone.now().timestamp() * 1000)
    return f"{prefixe}-{horodatage}-{secrets.token_hex(3)[:5]}"


class Echantillon(QhseModel):
    """
    Echantillon preleve pour analyse.

    La conformite globale est recalculee a partir des analyses terminees
    ou validees (voir Analyse.save).
    """

    NUMERO_PREFIX = "ECH"

    TYPES = choix(
        "Matière première", "Produit en cours", "Produit fini", "Eau", "Surface de ligne", "Environnement", "Autre",
    )
    UNITES = choix("g", "kg", "ml", "l")
    STATUTS = choix(
        "Reçu", "En attente d'analyse", "En cours d'analyse", "Analysé", "Archivé", "Détruit",
    )
    CONFORMITES = choix("Conforme", "Non conforme", "En attente", "Partiellement conforme")

    code_barres = models.CharField(max_length=64, unique=True, editable=False)
    qr_code = models.CharField(max_length=64, unique=True, editable=False)

    numero_lot = models.CharField(max_length=64, db_index=True)
    produit_nom = models.CharField(max_length=200, db_index=True)
    produit_reference = models.CharField(max_length=100, blank=True, default="")
    produit_version = models.CharField(max_length=32, blank=True, default="")
    type_echantillon = models.CharField(max_length=32, choices=TYPES)

    # Prelevement
    date_prelevement = models.DateTimeField(default=timezone.now)
    responsable_prelevement = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+"
    )
    localisation = json_dict()
    conditions_prelevement = json_dict()
    conservation = json_dict()

    # Mesures a reception
    poids_net = models.FloatField()
    unite = models.CharField(max_length=4, choices=UNITES, default="g")
    volume = models.FloatField(null=True, blank=True)
    apparence = json_dict()
    temperature_reception = models.FloatField(null=True, blank=True)
    date_reception = models.DateTimeField(default=timezone.now)

    statut = models.CharField(max_length=32, choices=STATUTS, default="Reçu", db_index=True)

    # Resultats (calcules)
    conformite = models.CharField(
        max_length=32, choices=CONFORMITES, default="En attente", editable=False, db_index=True
    )
    score = models.PositiveSmallIntegerField(null=True, blank=True, editable=False)

    decision_qualite = json_dict()
    documents = json_list()
    historique = json_list()

    class Meta(QhseModel.Meta):
        verbose_name = "Échantillon"

    def save(self, *args, **kwargs):
        if self._state.adding:
            self.code_barres = self.code_barres or _code_unique("ECH")
            self.qr_code = self.qr_code or _code_unique("QR")
        super().save(*args, **kwargs)

    def calculer_champs_derives(self) -> None:
        if self.pk is None:
            return
        statuts = list(
            self.analyses.filter(is_archived=False, statut__in=("Terminée", "Validée"))
            .exclude(statut_resultat="En attente")
            .values_list("statut_resultat", flat=True)
        )
        if not statuts:
            self.score, self.conformite = None, "En attente"
            return
        self.score = taux(statuts.count("Conforme"), len(statuts))
        self.conformite = controles.conformite_echantillon(self.score)

    def champs_derives(self):
        return ("score", "conformite")

    def actualiser_resultats(self) -> None:
        self.save(update_fields=["updated_at"])


class PlanControle(QhseModel):
    """Modele de controle (points a verifier) applicable a un produit ou un processus."""

    NUMERO_PREFIX = "PC"

    TYPES = choix(
        "Matière première", "Produit fini", "Processus", "Équipement", "Environnement", "Hygiène", "Transport", "Autre",
    )
    STATUTS = choix("Brouillon", "En révision", "Approuvé", "Actif", "Obsolète", "Archivé")
    FREQUENCES = choix(
        "Ponctuel", "Chaque lot", "Quotidien", "Hebdomadaire", "Mensuel", "Trimestriel", "Semestriel", "Annuel",
        "Sur demande",
    )

    nom = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    type = models.CharField(max_length=32, choices=TYPES)
    concerne = json_dict()
    statut = models.CharField(max_length=16, choices=STATUTS, default="Brouillon", db_index=True)

    version = models.CharField(max_length=16, default="1.0")
    date_revision = models.DateTimeField(null=True, blank=True)
    prochaine_revision = models.DateField(null=True, blank=True)

    frequence = models.CharField(max_length=16, choices=FREQUENCES)
    responsable = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")
    equipe = json_list()
    points_controle = json_list()
    criteres_acceptation = json_dict()
    procedures = json_list()
    documents = json_list()
    historique = json_list()

    class Meta(QhseModel.Meta):
        verbose_name = "Plan de contrôle"

    @property
    def nb_points_obligatoires(self) -> int:
        return sum(1 for p in self.points_controle or [] if p.get("obligatoire", True))

    def _changer_statut(self, statut: str, action: str, utilisateur, commentaire: str = "") -> None:
        if self.statut == statut:
            raise TransitionInvalide(f"Plan de contrôle déjà {statut.lower()}")
        self.statut = statut
        self.updated_by = utilisateur
        self.ajouter_historique(action, commentaire, utilisateur, version=self.version)
        self.save()

    def approuver(self, utilisateur, commentaire: str = "") -> None:
        self._changer_statut("Approuvé", "Approbation", utilisateur, commentaire)

    def activer(self, utilisateur, commentaire: str = "") -> None:
        self._changer_statut("Actif", "Activation", utilisateur, commentaire)

    def nouvelle_version(self, utilisateur, modifications: str = "", raison: str = "") -> str:
        self.version = f"{to_number(self.version, 1.0) + 0.1:.1f}"
        self.date_revision = timezone.now()
        self.statut = "En révision"
        self.updated_by = utilisateur
        self.ajouter_historique(
            "Nouvelle version", f"Version {self.version} créée", utilisateur,
            version=self.version, modifications=modifications, raison=raison,
        )
        self.save()
        return self.version

    def checklist(self) -> list:
        """Points de controle numerotes, valeurs a saisir lors de l'execution."""
        return [
            {
                "numero": index,
                "nom": point.get("nom"),
                "description": point.get("description", ""),
                "type": point.get("type"),
                "methode": point.get("methode", ""),
                "appareil": point.get("appareil", ""),
                "unite": point.get("unite", ""),
                "seuil_min": point.get("seuil_min"),
                "seuil_max": point.get("seuil_max"),
                "obligatoire": point.get("obligatoire", True),
                "conforme": None,
                "valeur": None,
                "commentaire": None,
            }
            for index, point in enumerate(self.points_controle or [], start=1)
        ]


class Analyse(QhseModel):
    """Analyse d'un echantillon, jugee contre ses seuils."""

    NUMERO_PREFIX = "ANA"

    TYPES = choix("Physico-chimique", "Microbiologique", "Organoleptique", "Sensorielles", "Autre")
    CATEGORIES = choix(
        "pH", "Humidité", "Densité", "Brix", "Sel", "Protéines", "Graisses", "Acidité", "Viscosité", "Couleur",
        "Texture", "Bactéries totales", "Coliformes", "E. coli", "Salmonella", "Listeria", "Levures",
        "Moisissures", "Staphylocoques", "Goût", "Odeur", "Aspect général",
    )
    CRITERES = choix(*controles.CRITERES)
    STATUTS_RESULTAT = choix("Conforme", "Non conforme", "Limite", "En attente")
    STATUTS = choix("Planifiée", "En cours", "Terminée", "Validée", "Rejetée", "Annulée")

    nom = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    type = models.CharField(max_length=32, choices=TYPES)
    categorie = models.CharField(max_length=32, choices=CATEGORIES)
    methode = json_dict()

    # Seuils
    seuil_min = models.FloatField(null=True, blank=True)
    seuil_max = models.FloatField(null=True, blank=True)
    unite = models.CharField(max_length=16, blank=True, default="")
    tolerance = models.FloatField(null=True, blank=True, help_text="%")
    critere = models.CharField(max_length=8, choices=CRITERES, default="Entre")

    # Resultat
    valeur = models.FloatField(null=True, blank=True)
    statut_resultat = models.CharField(
        max_length=16, choices=STATUTS_RESULTAT, default="En attente", editable=False
    )
    commentaire_resultat = models.TextField(blank=True, default="")
    date_analyse = models.DateTimeField(null=True, blank=True)
    technicien = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    validation = json_dict(editable=False)

    echantillon = models.ForeignKey(Echantillon, on_delete=models.PROTECT, related_name="analyses")
    plan_controle = models.ForeignKey(
        PlanControle, on_delete=models.SET_NULL, null=True, blank=True, related_name="analyses"
    )

    statut = models.CharField(max_length=16, choices=STATUTS, default="Planifiée", db_index=True)
    priorite = models.CharField(max_length=16, choices=PRIORITES, default="Normale")
    date_planification = models.DateField(default=timezone.localdate)
    date_debut = models.DateTimeField(null=True, blank=True)
    date_fin = models.DateTimeField(null=True, blank=True)
    duree_estimee = models.PositiveIntegerField(null=True, blank=True, help_text="minutes")

    donnees_brutes = json_list()
    calculs = json_list()
    incertitude = models.FloatField(null=True, blank=True, editable=False)

    documents = json_list()
    historique = json_list()

    class Meta(QhseModel.Meta):
        verbose_name = "Analyse"

    def save(self, *args, **kwargs):
        super().save(*args, **kwargs)
        self.echantillon.actualiser_resultats()

    def calculer_champs_derives(self) -> None:
        self.statut_resultat = controles.evaluer_resultat(
            self.valeur, self.critere, self.seuil_min, self.seuil_max, self.tolerance
        )
        valeurs = [to_number(d.get("valeur"), None) for d in self.donnees_brutes or []]
        ecart = stddev_pop(valeurs)
        self.incertitude = round(ecart, 6) if ecart is not None else None

    def champs_derives(self):
        return ("statut_resultat", "incertitude")

    def enregistrer_resultats(self, utilisateur, valeur, commentaire: str = "", **extra) -> None:
        self.valeur = valeur
        self.commentaire_resultat = commentaire or self.commentaire_resultat
        for champ, v in extra.items():
            setattr(self, champ, v)
        self.technicien = utilisateur
        self.date_analyse = timezone.now()
        self.date_fin = self.date_analyse
        if self.statut in ("Planifiée", "En cours"):
            self.statut = "Terminée"
        self.updated_by = utilisateur
        self.ajouter_historique("Résultats", f"Valeur saisie: {valeur}", utilisateur, valeur=valeur)
        self.save()

    def _valider(self, utilisateur, valide: bool, commentaire: str) -> None:
        if self.valeur is None:
            raise TransitionInvalide("Aucun résultat à valider")
        if self.statut in ("Validée", "Rejetée", "Annulée"):
            raise TransitionInvalide(f"Analyse déjà {self.statut.lower()}")
        self.validation = {
            "valide": valide,
            "valide_par": utilisateur.pk,
            "date_validation": timezone.now().isoformat(),
            "commentaire": commentaire,
        }
        self.statut = "Validée" if valide else "Rejetée"
        self.updated_by = utilisateur
        self.ajouter_historique("Validation" if valide else "Rejet", commentaire, utilisateur)
        self.save()

    def valider(self, utilisateur, commentaire: str = "") -> None:
        self._valider(utilisateur, True, commentaire)

    def rejeter(self, utilisateur, commentaire: str = "") -> None:
        self._valider(utilisateur, False, commentaire)
