from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone
from rest_framework import serializers

from common.exceptions import TransitionInvalide
from common.kpis import taux
from common.models import QhseModel, choix, json_dict, json_list
from common.utils import as_date, as_datetime, to_number
from laboratoire.controles import evaluer_resultat

PRIORITES = choix("Faible", "Normale", "Élevée", "Critique")
STATUTS_ACTION_CLOS = ("Terminée", "Vérifiée")


def actions_en_retard(actions, aujourd_hui=None) -> list:
    aujourd_hui = aujourd_hui or timezone.localdate()
    retard = []
    for action in actions or []:
        limite = as_date(action.get("date_limite"))
        if limite and limite < aujourd_hui and action.get("statut") not in STATUTS_ACTION_CLOS:
            retard.append(action)
    return retard


class MatierePremiere(QhseModel):
    """Matiere premiere referencee, avec ses lots recus et ses certificats."""

    NUMERO_PREFIX = "MP"

    TYPES = choix("Végétale", "Animale", "Minérale", "Chimique", "Autre")
    UNITES = choix("kg", "g", "l", "ml", "pièce", "m²", "m³")
    STATUTS = choix("Actif", "Suspendu", "Archivé", "En révision")

    nom = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    reference = models.CharField(max_length=100, blank=True, default="")

    fournisseur_nom = models.CharField(max_length=200, db_index=True)
    fournisseur_code = models.CharField(max_length=64, blank=True, default="")
    fournisseur_contact = json_dict()
    fournisseur_certifications = json_list()

    type_matiere = models.CharField(max_length=16, choices=TYPES, blank=True, default="")
    categorie = models.CharField(max_length=100, blank=True, default="")
    famille = models.CharField(max_length=100, blank=True, default="")
    unite = models.CharField(max_length=8, choices=UNITES, default="kg")
    duree_conservation = models.PositiveIntegerField(null=True, blank=True, help_text="jours")
    temperature_stockage = json_dict()
    specifications = json_dict()
    criteres_reception = json_dict()
    controles_qualite = json_list()

    statut = models.CharField(max_length=16, choices=STATUTS, default="Actif", db_index=True)
    lots = json_list()
    documents = json_list()
    certificats = json_list()

    # Seuils d'alerte
    stock_minimum = models.FloatField(null=True, blank=True)
    stock_maximum = models.FloatField(null=True, blank=True)
    alerte_peremption = models.PositiveIntegerField(default=30, help_text="jours")

    class Meta(QhseModel.Meta):
        verbose_name = "Matière première"
        verbose_name_plural = "Matières premières"

    def ajouter_lot(self, lot: dict, utilisateur) -> dict:
        if any(l.get("numero_lot") == lot["numero_lot"] for l in self.lots or []):
            raise serializers.ValidationError({"numero_lot": "Ce numéro de lot existe déjà"})
        lot = {"date_reception": timezone.now(), **lot}
        self.lots = list(self.lots or []) + [lot]
        self.updated_by = utilisateur
        self.save()
        return lot

    @property
    def quantite_en_stock(self) -> float:
        return sum(to_number(l.get("quantite")) for l in self.lots or [] if l.get("statut") == "En stock")

    def statistiques(self) -> dict:
        lots = self.lots or []
        statuts = [l.get("statut") for l in lots]
        total, rejetes = len(lots), statuts.count("Rejeté")
        return {
            "total": total,
            "en_stock": statuts.count("En stock"),
            "utilises": statuts.count("Utilisé"),
            "perimes": statuts.count("Périmé"),
            "rejetes": rejetes,
            "quantite_en_stock": self.quantite_en_stock,
            "taux_conformite": taux(total - rejetes, total) if total else 100,
        }

    def alertes(self, aujourd_hui=None) -> list:
        """Alertes de stock, de peremption des lots et d'expiration des certificats."""
        aujourd_hui = aujourd_hui or timezone.localdate()
        alertes = []

        quantite = self.quantite_en_stock
        if self.stock_minimum is not None and quantite <= self.stock_minimum:
            alertes.append({
                "type": "stock_bas",
                "niveau": "critique",
                "message": f"Stock critique atteint: {quantite:g} {self.unite} restant(s)",
            })

        for lot in self.lots or []:
            peremption = as_date(lot.get("date_peremption"))
            if lot.get("statut") != "En stock" or peremption is None:
                continue
            jours = (peremption - aujourd_hui).days
            if jours <= 0:
                alertes.append({
                    "type": "peremption",
                    "niveau": "critique",
                    "numero_lot": lot.get("numero_lot"),
                    "message": f"Lot {lot.get('numero_lot')} périmé depuis {abs(jours)} jour(s)",
                })
            elif jours <= self.alerte_peremption:
                alertes.append({
                    "type": "peremption",
                    "niveau": "attention",
                    "numero_lot": lot.get("numero_lot"),
                    "message": f"Lot {lot.get('numero_lot')} expire dans {jours} jour(s)",
                })

        for certificat in self.certificats or []:
            expiration = as_date(certificat.get("date_expiration"))
            if expiration is None:
                continue
            jours = (expiration - aujourd_hui).days
            libelle = f"Certificat {certificat.get('type', '')} ({certificat.get('numero', '')})"
            if jours <= 0:
                alertes.append({"type": "certificat_expire", "niveau": "critique", "message": f"{libelle} expiré"})
            elif jours <= 30:
                alertes.append({
                    "type": "certificat_expire",
                    "niveau": "attention",
                    "message": f"{libelle} expire dans {jours} jour(s)",
                })
        return alertes


class ControleQualite(QhseModel):
    """
    Controle qualite planifie, mesure critere par critere.

    score = criteres conformes / criteres definis (un resultat par critere),
    >= 90 Conforme, >= 70 Sous reserve, sinon Non conforme.
    """

    NUMERO_PREFIX = "CQ"

    TYPES = choix(
        "Réception matières premières", "Contrôle en cours de production", "Contrôle produit fini",
        "Contrôle environnemental", "Contrôle hygiène", "Contrôle transport", "Autre",
    )
    STATUTS = choix("Planifié", "En cours", "Terminé", "Validé", "Rejeté", "Annulé")
    EVALUATIONS = choix("Conforme", "Non conforme", "Sous réserve", "En attente")

    titre = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    type = models.CharField(max_length=40, choices=TYPES)
    produit = json_dict()
    localisation = json_dict()

    date_planification = models.DateField()
    date_debut = models.DateTimeField(null=True, blank=True)
    date_fin = models.DateTimeField(null=True, blank=True)
    duree_estimee = models.PositiveIntegerField(null=True, blank=True, help_text="minutes")

    controleur = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")
    equipe = json_list()
    criteres = json_list()
    plan_controle = models.ForeignKey(
        "laboratoire.PlanControle", on_delete=models.SET_NULL, null=True, blank=True, related_name="controles"
    )
    resultats = json_list(editable=False)

    score = models.PositiveSmallIntegerField(null=True, blank=True, editable=False)
    evaluation = models.CharField(max_length=16, choices=EVALUATIONS, default="En attente", editable=False)
    commentaire_evaluation = models.TextField(blank=True, default="")
    recommandations = json_list()

    actions_correctives = json_list()
    statut = models.CharField(max_length=16, choices=STATUTS, default="Planifié", db_index=True)
    priorite = models.CharField(max_length=16, choices=PRIORITES, default="Normale")
    documents = json_list()
    historique = json_list()

    class Meta(QhseModel.Meta):
        verbose_name = "Contrôle qualité"
        verbose_name_plural = "Contrôles qualité"

    @staticmethod
    def evaluer(score: int) -> str:
        if score >= 90:
            return "Conforme"
        if score >= 70:
            return "Sous réserve"
        return "Non conforme"

    def calculer_champs_derives(self) -> None:
        if not self.resultats:
            self.score, self.evaluation = None, "En attente"
            return
        conformes = sum(1 for r in self.resultats if r.get("conforme"))
        self.score = taux(conformes, len(self.criteres or []) or len(self.resultats))
        self.evaluation = self.evaluer(self.score)

    def champs_derives(self):
        return ("score", "evaluation")

    def ajouter_resultat(self, critere_id: str, valeur: float, utilisateur, unite: str = "", commentaire: str = ""):
        critere = next((c for c in self.criteres or [] if c.get("id") == critere_id), None)
        if critere is None:
            raise serializers.ValidationError({"critere": "Critère non trouvé"})
        seuil_min, seuil_max = critere.get("seuil_min"), critere.get("seuil_max")
        conforme = evaluer_resultat(valeur, "Entre", seuil_min, seuil_max) != "Non conforme"
        bornes = [b for b in (seuil_min, seuil_max) if b is not None]
        resultat = {
            "critere": critere_id,
            "valeur": valeur,
            "unite": unite or critere.get("unite", ""),
            "conforme": conforme,
            "ecart": min(abs(valeur - b) for b in bornes) if bornes else None,
            "commentaire": commentaire,
            "date_mesure": timezone.now(),
            "mesureur": utilisateur.pk,
        }
        # un seul resultat par critere: la nouvelle mesure remplace l'ancienne
        self.resultats = [r for r in self.resultats or [] if r.get("critere") != critere_id] + [resultat]
        if self.statut == "Planifié":
            self.statut = "En cours"
            self.date_debut = self.date_debut or timezone.now()
        self.updated_by = utilisateur
        self.ajouter_historique("Résultat", f"Critère {critere.get('nom')}: {valeur}", utilisateur)
        self.save()
        return resultat


class NonConformite(QhseModel):
    """Ecart constate par rapport a une exigence, suivi jusqu'a sa cloture."""

    NUMERO_PREFIX = "NC"

    TYPES = choix(
        "Produit", "Processus", "Système", "Documentation", "Formation", "Équipement", "Fournisseur", "Autre",
    )
    CATEGORIES = choix("Critique", "Majeure", "Mineure", "Observation")
    GRAVITES = choix("Faible", "Modérée", "Élevée", "Critique")
    METHODES_DETECTION = choix("Audit", "Contrôle", "Inspection", "Signalement", "Autre")
    STATUTS = choix("Déclarée", "En investigation", "En traitement", "Résolue", "Fermée", "Clôturée")
    PRIORITES = choix("Basse", "Normale", "Haute", "Critique")

    # branches du diagramme d'Ishikawa alimentees par type de cause
    BRANCHES_ISHIKAWA = {
        "Technique": "machine",
        "Humaine": "main_oeuvre",
        "Organisationnelle": "methode",
        "Environnementale": "milieu",
        "Fournisseur": "materiel",
    }

    titre = models.CharField(max_length=200)
    description = models.TextField()
    type = models.CharField(max_length=16, choices=TYPES)
    categorie = models.CharField(max_length=16, choices=CATEGORIES)
    gravite = models.CharField(max_length=16, choices=GRAVITES, db_index=True)

    date_detection = models.DateTimeField(default=timezone.now)
    detecteur = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")
    methode_detection = models.CharField(max_length=16, choices=METHODES_DETECTION, blank=True, default="")
    source = models.CharField(max_length=200, blank=True, default="")

    localisation = json_dict()
    concerne = json_dict()
    impact = json_dict()
    cout_total = models.FloatField(default=0, editable=False)

    causes = json_list()
    analyse_cinq_pourquoi = json_list()
    diagramme_ishikawa = json_dict()
    amdec = json_list()

    actions_immediates = json_list()
    actions_correctives = json_list()
    actions_preventives = json_list()

    statut = models.CharField(max_length=20, choices=STATUTS, default="Déclarée", db_index=True)
    priorite = models.CharField(max_length=16, choices=PRIORITES, default="Normale")
    investigation = json_dict()
    fermeture = json_dict(editable=False)
    delai_resolution = models.PositiveIntegerField(null=True, blank=True, editable=False, help_text="jours")

    documents = json_list()
    historique = json_list()

    class Meta(QhseModel.Meta):
        verbose_name = "Non-conformité"

    def calculer_champs_derives(self) -> None:
        impact = self.impact or {}
        self.cout_total = sum(
            to_number((impact.get(axe) or {}).get("cout")) for axe in ("production", "qualite")
        )
        # AMDEC: criticite = gravite x occurrence x detection
        self.amdec = [
            {**ligne, "criticite": int(to_number(ligne.get("gravite")) * to_number(ligne.get("occurrence"))
                                       * to_number(ligne.get("detection")))}
            for ligne in self.amdec or []
        ]
        fermeture = as_datetime((self.fermeture or {}).get("date"))
        detection = as_datetime(self.date_detection)
        if fermeture and detection:
            self.delai_resolution = max(0, -(-(fermeture - detection) // timedelta(days=1)))
        else:
            self.delai_resolution = None

    def champs_derives(self):
        return ("cout_total", "amdec", "delai_resolution")

    @property
    def actions_retard(self) -> list:
        return actions_en_retard(self.actions_correctives)

    @property
    def est_en_retard(self) -> bool:
        return bool(self.actions_retard)

    def causes_racines(self) -> list:
        return [item for item in self.analyse_cinq_pourquoi or [] if item.get("cause_racine")]

    def ishikawa(self) -> dict:
        """Diagramme 6M: branches saisies completees par les causes typees."""
        diagramme = {branche: [] for branche in ("materiel", "methode", "main_oeuvre", "milieu", "machine", "mesure")}
        for branche, items in (self.diagramme_ishikawa or {}).items():
            diagramme.setdefault(branche, []).extend(items or [])
        for cause in self.causes or []:
            branche = self.BRANCHES_ISHIKAWA.get(cause.get("type"))
            if branche and cause.get("description") and cause["description"] not in diagramme[branche]:
                diagramme[branche].append(cause["description"])
        return diagramme

    def fermer(self, utilisateur, commentaire: str = "", efficacite_globale: str = "Efficace") -> None:
        if self.statut in ("Fermée", "Clôturée"):
            raise TransitionInvalide(f"Non-conformité déjà {self.statut.lower()}")
        self.statut = "Fermée"
        self.fermeture = {
            "date": timezone.now(),
            "ferme_par": utilisateur.pk,
            "commentaire": commentaire,
            "efficacite_globale": efficacite_globale,
        }
        self.updated_by = utilisateur
        self.ajouter_historique("Fermeture", commentaire or "Non-conformité fermée", utilisateur)
        self.save()

    def cloturer(self, utilisateur, commentaire: str = "") -> None:
        if self.statut == "Clôturée":
            raise TransitionInvalide("Non-conformité déjà clôturée")
        if not self.fermeture:
            self.fermeture = {"date": timezone.now(), "ferme_par": utilisateur.pk, "commentaire": commentaire}
        self.statut = "Clôturée"
        self.updated_by = utilisateur
        self.ajouter_historique("Clôture", commentaire or "Non-conformité clôturée", utilisateur)
        self.save()


class DecisionQualite(QhseModel):
    NUMERO_PREFIX = "DQ"

    TYPES = choix(
        "Acceptation", "Acceptation sous réserve", "Rejet", "Mise en quarantaine", "Destruction",
        "Retour fournisseur", "Retraitement", "Dégradation", "Autre",
    )
    CONTEXTES = choix("Matière première", "Produit fini", "Processus", "Équipement", "Système")
    NIVEAUX_VALIDATION = choix("Contrôleur", "Superviseur", "Responsable Qualité", "Direction")
    STATUTS = choix("En attente", "Validée", "Rejetée", "Appliquée", "Annulée")

    titre = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    type = models.CharField(max_length=32, choices=TYPES)
    contexte_type = models.CharField(max_length=32, choices=CONTEXTES)
    contexte = json_dict()

    matiere_premiere = models.ForeignKey(
        MatierePremiere, on_delete=models.SET_NULL, null=True, blank=True, related_name="decisions"
    )
    controle_qualite = models.ForeignKey(
        ControleQualite, on_delete=models.SET_NULL, null=True, blank=True, related_name="decisions"
    )
    non_conformite = models.ForeignKey(
        NonConformite, on_delete=models.SET_NULL, null=True, blank=True, related_name="decisions"
    )

    decisionnaire = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")
    date_decision = models.DateTimeField(default=timezone.now)
    justification = models.TextField()
    criteres_decision = json_list()
    conditions = json_list()
    actions_suivantes = json_list()

    niveau_validation = models.CharField(max_length=32, choices=NIVEAUX_VALIDATION, default="Responsable Qualité")
    validation = json_dict(editable=False)
    statut = models.CharField(max_length=16, choices=STATUTS, default="En attente", db_index=True)
    priorite = models.CharField(max_length=16, choices=PRIORITES, default="Normale")
    impact = json_dict()
    documents = json_list()
    historique = json_list()

    class Meta(QhseModel.Meta):
        verbose_name = "Décision qualité"
        verbose_name_plural = "Décisions qualité"

    def _statuer(self, utilisateur, statut: str, action: str, commentaire: str) -> None:
        if self.statut != "En attente":
            raise TransitionInvalide(f"Décision déjà {self.statut.lower()}")
        self.validation = {
            "statut": statut,
            "validateur": utilisateur.pk,
            "date_validation": timezone.now(),
            "commentaire": commentaire,
            "niveau": self.niveau_validation,
        }
        self.statut = statut
        self.updated_by = utilisateur
        self.ajouter_historique(action, commentaire, utilisateur)
        self.save()

    def valider(self, utilisateur, commentaire: str = "") -> None:
        self._statuer(utilisateur, "Validée", "Validation", commentaire)

    def rejeter(self, utilisateur, commentaire: str = "") -> None:
        self._statuer(utilisateur, "Rejetée", "Rejet", commentaire)

    def appliquer(self, utilisateur, commentaire: str = "") -> None:
        if self.statut != "Validée":
            raise TransitionInvalide("Seule une décision validée peut être appliquée")
        self.statut = "Appliquée"
        self.updated_by = utilisateur
        self.ajouter_historique("Application", commentaire, utilisateur)
        self.save()


class Tracabilite(QhseModel):
    """Fiche de tracabilite d'un lot: origine, transformations, liens amont/aval, rappels."""

    NUMERO_PREFIX = "TR"

    TYPES = choix("Matière première", "Produit fini", "Processus", "Équipement")
    STATUTS = choix("En stock", "En production", "Livré", "Rappelé", "Détruit", "Retiré")

    type = models.CharField(max_length=32, choices=TYPES)
    reference = models.CharField(max_length=100, db_index=True)
    nom = models.CharField(max_length=200, blank=True, default="")
    version = models.CharField(max_length=32, blank=True, default="")
    lot = models.CharField(max_length=64, blank=True, default="", db_index=True)

    origine = json_dict()
    destination = json_dict()
    transformation = json_list()
    liens = json_list(editable=False)
    controles = json_list()
    non_conformites = models.ManyToManyField(NonConformite, blank=True, related_name="tracabilites")
    rappels = json_list(editable=False)

    statut = models.CharField(max_length=16, choices=STATUTS, default="En stock", db_index=True)
    date_premiere_utilisation = models.DateTimeField(null=True, blank=True)
    date_derniere_utilisation = models.DateTimeField(null=True, blank=True)
    date_peremption = models.DateField(null=True, blank=True, db_index=True)
    date_destruction = models.DateTimeField(null=True, blank=True)

    documents = json_list()
    historique = json_list()

    class Meta(QhseModel.Meta):
        verbose_name = "Traçabilité"
        verbose_name_plural = "Traçabilités"

    def simuler_rappel(self, utilisateur, raison: str, type_rappel: str = "Rappel produit", quantite=None,
                       unite: str = "") -> dict:
        if self.statut in ("Rappelé", "Détruit"):
            raise TransitionInvalide(f"Lot déjà {self.statut.lower()}")
        rappel = {
            "type": type_rappel,
            "date": timezone.now(),
            "raison": raison,
            "quantite": quantite,
            "unite": unite,
            "statut": "En cours",
        }
        self.rappels = list(self.rappels or []) + [rappel]
        self.statut = "Rappelé"
        self.updated_by = utilisateur
        self.ajouter_historique("Rappel", raison, utilisateur)
        self.save()
        return rappel

    def ajouter_lien(self, utilisateur, lien: dict) -> dict:
        lien = {"date": timezone.now(), **lien}
        self.liens = list(self.liens or []) + [lien]
        self.updated_by = utilisateur
        self.ajouter_historique("Lien traçabilité", f"Lien ajouté: {lien.get('type')}", utilisateur)
        self.save()
        return lien

    def verification(self) -> dict:
        manques = []
        origine = self.origine or {}
        if not origine.get("type") or not origine.get("date_reception"):
            manques.append("Origine incomplète")
        if not self.controles:
            manques.append("Aucun contrôle qualité")
        if not self.documents:
            manques.append("Aucun document de traçabilité")
        return {"complete": not manques, "manques": manques}

    def chaine(self) -> list:
        chaine = [{"element": self.reference, "type": self.type, "statut": self.statut, "lot": self.lot}]
        for lien in self.liens or []:
            chaine.append({
                "lien": lien.get("type"),
                "element": lien.get("element_id"),
                "element_type": lien.get("element_type"),
                "quantite": lien.get("quantite"),
                "unite": lien.get("unite"),
                "date": lien.get("date"),
            })
        return chaine
