import logging
import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone
from rest_framework import serializers

from common.exceptions import StockInsuffisant, TransitionInvalide
from common.kpis import taux
from common.models import QhseModel, choix, json_dict, json_list
from common.utils import ajouter_mois, as_datetime, to_number
from laboratoire.controles import conformite_echantillon, evaluer_resultat

logger = logging.getLogger(__name__)


def _seuil_alerte_epi() -> int:
    return settings.QHSE_ALERTES["stock_epi"]


class Hygiene(QhseModel):
    """
    Controle d'hygiene d'une zone, evalue point par point.

    score = points conformes / points evalues; l'evaluation suit la meme
    grille que les echantillons (>= 90 Conforme, >= 70 Partiellement conforme).
    """

    NUMERO_PREFIX = "HYG"

    TYPES = choix("Routine", "Exceptionnel", "Audit", "Inspection")
    STATUTS = choix("Planifié", "En cours", "Terminé", "Reporté")
    EVALUATIONS = choix("En attente", "Conforme", "Non conforme", "Partiellement conforme")
    STATUTS_POINT = ("En attente", "Conforme", "Non conforme")

    titre = models.CharField(max_length=200)
    description = models.TextField()
    type = models.CharField(max_length=16, choices=TYPES)
    statut = models.CharField(max_length=16, choices=STATUTS, default="Planifié", db_index=True)
    zone = models.CharField(max_length=200)
    date_planification = models.DateField()
    date_realisation = models.DateTimeField(null=True, blank=True)
    responsable = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")

    points_controle = json_list()
    actions = json_list()
    score = models.PositiveSmallIntegerField(default=0, editable=False)
    evaluation = models.CharField(max_length=24, choices=EVALUATIONS, default="En attente", editable=False)
    historique = json_list()

    class Meta(QhseModel.Meta):
        verbose_name = "Contrôle d'hygiène"
        verbose_name_plural = "Contrôles d'hygiène"

    def calculer_champs_derives(self) -> None:
        evalues = [p for p in self.points_controle or [] if p.get("statut") in ("Conforme", "Non conforme")]
        if not evalues:
            self.score, self.evaluation = 0, "En attente"
            return
        self.score = taux(sum(1 for p in evalues if p["statut"] == "Conforme"), len(evalues))
        self.evaluation = conformite_echantillon(self.score)

    def champs_derives(self):
        return ("score", "evaluation")

    def enregistrer_resultat(self, point_id: str, utilisateur, statut: str = None, valeur: float = None,
                             unite: str = "", observations: str = "") -> dict:
        point = next((p for p in self.points_controle or [] if p.get("id") == point_id), None)
        if point is None:
            raise serializers.ValidationError({"point": "Point de contrôle non trouvé"})
        if valeur is not None:
            point["valeur"] = valeur
            point["unite"] = unite or point.get("unite", "")
            if statut is None:
                statut = evaluer_resultat(valeur, "Entre", point.get("seuil_min"), point.get("seuil_max"))
        point["statut"] = statut or "En attente"
        if observations:
            point["observations"] = observations
        point["date_mesure"] = timezone.now()

        if self.statut == "Planifié":
            self.statut = "En cours"
        if all(p.get("statut") != "En attente" for p in self.points_controle):
            self.statut = "Terminé"
            self.date_realisation = self.date_realisation or timezone.now()
        self.updated_by = utilisateur
        self.ajouter_historique("Résultat", f"{point.get('nom')}: {point['statut']}", utilisateur)
        self.save()
        return point


class EPI(QhseModel):
    """
    Equipement de protection individuelle: stock et dotations.

    quantite_disponible = quantite_totale - quantites encore dotees
    (toute dotation qui n'est pas rendue immobilise son stock).
    """

    NUMERO_PREFIX = "EPI"

    TYPES = choix(
        "Casque", "Lunettes", "Masque", "Gants", "Chaussures", "Vêtement", "Harnais", "Protection auditive", "Autre",
    )
    CATEGORIES = choix(
        "Protection de la tête", "Protection des yeux", "Protection respiratoire", "Protection des mains",
        "Protection des pieds", "Protection du corps", "Protection contre les chutes", "Protection auditive",
    )
    UNITES = choix("pièce", "paire", "mètre", "kg")
    STATUTS = choix("Actif", "Suspendu", "Archivé", "En révision")
    STATUTS_DOTATION = ("Actif", "Expiré", "Perdu", "Endommagé", "Rendu")

    nom = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    reference = models.CharField(max_length=100, blank=True, default="")
    type = models.CharField(max_length=24, choices=TYPES, db_index=True)
    categorie = models.CharField(max_length=40, choices=CATEGORIES)
    risques_proteges = json_list()
    caracteristiques = json_dict()
    duree_vie = models.PositiveIntegerField(null=True, blank=True, help_text="mois")
    fournisseur = json_dict()

    quantite_totale = models.PositiveIntegerField(default=0)
    quantite_disponible = models.IntegerField(default=0, editable=False)
    seuil_alerte = models.PositiveIntegerField(default=_seuil_alerte_epi)
    unite = models.CharField(max_length=8, choices=UNITES, default="pièce")

    dotations = json_list(editable=False)
    maintenance = json_list()
    statut = models.CharField(max_length=16, choices=STATUTS, default="Actif", db_index=True)
    documents = json_list()
    historique = json_list()

    class Meta(QhseModel.Meta):
        verbose_name = "EPI"
        verbose_name_plural = "EPI"

    def calculer_champs_derives(self) -> None:
        dote = sum(int(to_number(d.get("quantite"))) for d in self.dotations or [] if d.get("statut") != "Rendu")
        self.quantite_disponible = self.quantite_totale - dote

    def champs_derives(self):
        return ("quantite_disponible",)

    @property
    def est_en_alerte_stock(self) -> bool:
        return self.quantite_disponible <= self.seuil_alerte

    def doter(self, employe, quantite: int, responsable, commentaire: str = "") -> dict:
        self.calculer_champs_derives()
        if quantite > self.quantite_disponible:
            raise StockInsuffisant(
                f"Stock insuffisant: {self.quantite_disponible} {self.unite} disponible(s) pour {quantite} demandé(s)"
            )
        maintenant = timezone.now()
        dotation = {
            "id": uuid.uuid4().hex[:12],
            "employe": employe.pk,
            "quantite": quantite,
            "date_dotation": maintenant,
            "date_expiration": ajouter_mois(maintenant, self.duree_vie) if self.duree_vie else None,
            "statut": "Actif",
            "responsable": responsable.pk,
            "commentaire": commentaire,
        }
        self.dotations = list(self.dotations or []) + [dotation]
        self.updated_by = responsable
        self.ajouter_historique("Dotation", f"Dotation de {quantite} {self.nom} à {employe}", responsable)
        self.save()
        logger.info(f"[hse] {self.numero}: {quantite} {self.unite} doté(s) à {employe}, reste {self.quantite_disponible}")
        return dotation

    def retourner(self, employe, quantite: int, responsable, etat: str = "Bon", commentaire: str = "") -> dict:
        """
        Retour d'une dotation active. Un EPI rendu en bon etat revient en
        stock; perdu ou endommage, il sort du stock total.
        """
        dotation = next(
            (d for d in self.dotations or [] if d.get("employe") == employe.pk and d.get("statut") == "Actif"), None
        )
        if dotation is None:
            raise serializers.ValidationError({"employe": "Aucune dotation active pour cet employé"})
        if quantite > dotation["quantite"]:
            raise serializers.ValidationError({"quantite": "Quantité supérieure à la quantité dotée"})

        dotation["quantite"] -= quantite
        if etat != "Bon":
            self.quantite_totale = max(0, self.quantite_totale - quantite)
        if dotation["quantite"] == 0:
            dotation["statut"] = "Rendu" if etat == "Bon" else etat
        dotation["commentaire"] = commentaire or dotation.get("commentaire", "")
        self.updated_by = responsable
        self.ajouter_historique("Retour", f"Retour de {quantite} {self.nom} ({etat}) par {employe}", responsable)
        self.save()
        logger.info(f"[hse] {self.numero}: retour de {quantite} {self.unite} ({etat})")
        return dotation

    def expirer_dotations(self, maintenant=None) -> int:
        maintenant = maintenant or timezone.now()
        expirees = 0
        for dotation in self.dotations or []:
            expiration = as_datetime(dotation.get("date_expiration"))
            if dotation.get("statut") == "Actif" and expiration and expiration <= maintenant:
                dotation["statut"] = "Expiré"
                expirees += 1
        if expirees:
            self.ajouter_historique("Expiration", f"{expirees} dotation(s) expirée(s) automatiquement")
        return expirees


class ProduitChimique(QhseModel):
    NUMERO_PREFIX = "CHIM"

    TYPES = choix("Détergent", "Désinfectant", "Solvant", "Acide", "Base", "Oxydant", "Réducteur", "Autre")
    USAGES = choix("Nettoyage", "Désinfection", "Dégraissage", "Décapage", "Traitement", "Autre")
    ETATS = choix("Solide", "Liquide", "Gaz", "Poudre")
    UNITES = choix("L", "ml", "kg", "g", "pièce")
    STATUTS = choix("Actif", "Suspendu", "Archivé", "Interdit")

    nom = models.CharField(max_length=200)
    nom_commercial = models.CharField(max_length=200, blank=True, default="")
    description = models.TextField(blank=True, default="")
    reference = models.CharField(max_length=100, blank=True, default="")
    type = models.CharField(max_length=16, choices=TYPES, db_index=True)
    usage = models.CharField(max_length=16, choices=USAGES, blank=True, default="")
    etat = models.CharField(max_length=8, choices=ETATS)
    composition = json_dict()
    proprietes = json_dict()
    # symboles, mentions de danger (H) et de prudence (P)
    risques = json_dict()
    stockage = json_dict()
    incompatibilites = json_list()

    quantite_totale = models.FloatField(default=0)
    quantite_disponible = models.FloatField(default=0, editable=False)
    seuil_alerte = models.FloatField(default=1)
    unite = models.CharField(max_length=8, choices=UNITES, default="L")
    localisation = json_dict()

    date_reception = models.DateField(null=True, blank=True)
    duree_conservation = models.PositiveIntegerField(null=True, blank=True, help_text="mois")
    date_peremption = models.DateField(null=True, blank=True, db_index=True)

    utilisations = json_list(editable=False)
    fournisseur = json_dict()
    documents_securite = json_list()
    controles = json_list()
    statut = models.CharField(max_length=16, choices=STATUTS, default="Actif", db_index=True)
    historique = json_list()

    class Meta(QhseModel.Meta):
        verbose_name = "Produit chimique"
        verbose_name_plural = "Produits chimiques"

    def calculer_champs_derives(self) -> None:
        utilise = sum(to_number(u.get("quantite")) for u in self.utilisations or [])
        self.quantite_disponible = round(self.quantite_totale - utilise, 3)
        # reception + conservation connues: la peremption en decoule, sinon on garde la date saisie
        if self.date_reception and self.duree_conservation:
            self.date_peremption = ajouter_mois(self.date_reception, self.duree_conservation)

    def champs_derives(self):
        return ("quantite_disponible", "date_peremption")

    @property
    def est_en_alerte_stock(self) -> bool:
        return self.quantite_disponible <= self.seuil_alerte

    @property
    def est_perime(self) -> bool:
        return self.date_peremption is not None and self.date_peremption <= timezone.localdate()

    def enregistrer_utilisation(self, quantite: float, utilisateur, zone: str = "", objectif: str = "",
                                commentaire: str = "") -> dict:
        if self.statut == "Interdit":
            raise TransitionInvalide("Produit interdit: utilisation impossible")
        self.calculer_champs_derives()
        if quantite > self.quantite_disponible:
            raise StockInsuffisant(
                f"Stock insuffisant: {self.quantite_disponible:g} {self.unite} disponible(s)"
            )
        utilisation = {
            "date": timezone.now(),
            "quantite": quantite,
            "unite": self.unite,
            "utilisateur": utilisateur.pk,
            "zone": zone,
            "objectif": objectif,
            "commentaire": commentaire,
        }
        self.utilisations = list(self.utilisations or []) + [utilisation]
        self.updated_by = utilisateur
        self.ajouter_historique("Utilisation", f"Utilisation de {quantite:g} {self.unite} de {self.nom}", utilisateur)
        self.save()
        logger.info(f"[hse] {self.numero}: {quantite:g} {self.unite} utilisé(s), reste {self.quantite_disponible:g}")
        return utilisation
