from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from hse.models import EPI, Hygiene, ProduitChimique
from laboratoire.models import Analyse, Echantillon, PlanControle
from qhse.models import Audit, Conformite, Formation, Incident, Risque
from qualite.models import ControleQualite, DecisionQualite, MatierePremiere, NonConformite, Tracabilite

User = get_user_model()

UTILISATEURS = (
    ("admin@qhse.local", "admin", "Admin", "Système"),
    ("manager@qhse.local", "manager", "Moreau", "Claire"),
    ("qhse@qhse.local", "responsable_qhse", "Lefèvre", "Hugo"),
    ("employe@qhse.local", "employe", "Garcia", "Inès"),
)


class Command(BaseCommand):
    help = "Cree des utilisateurs de demonstration et quelques enregistrements par domaine."

    def add_arguments(self, parser):
        parser.add_argument("--entreprise", type=str, default="Demo Agro", help="Entreprise des comptes crees")
        parser.add_argument("--password", type=str, default="Demo1234", help="Mot de passe des comptes crees")

    def handle(self, *args, **opts):
        entreprise = str(opts["entreprise"])
        if User.objects.filter(email=UTILISATEURS[0][0]).exists():
            self.stdout.write(self.style.WARNING("Donnees de demonstration deja presentes, rien a faire"))
            return

        with transaction.atomic():
            users = {
                role: User.objects.create_user(
                    email=email, password=opts["password"], role=role, nom=nom, prenom=prenom, entreprise=entreprise
                )
                for email, role, nom, prenom in UTILISATEURS
            }
            self.stdout.write(self.style.NOTICE(f"{len(users)} utilisateurs crees pour {entreprise}"))

            nb = self._qhse(users) + self._laboratoire(users) + self._qualite(users) + self._hse(users)

        self.stdout.write(self.style.SUCCESS(f"{nb} enregistrements de demonstration crees"))

    def _qhse(self, users):
        manager, qhse = users["manager"], users["responsable_qhse"]
        aujourd_hui = timezone.localdate()

        Audit.objects.create(
            created_by=manager, titre="Audit interne HACCP", type="Interne", domaine="Hygiène",
            referentiel="HACCP", date_planification=aujourd_hui + timedelta(days=14),
            auditeur_principal=qhse, demandeur=manager,
            criteres=[
                {"id": "c1", "exigence": "Plan HACCP à jour", "statut": "Conforme"},
                {"id": "c2", "exigence": "Enregistrements CCP", "statut": "Non conforme"},
            ],
        )
        Incident.objects.create(
            created_by=users["employe"], titre="Coupure lors du tranchage", description="Coupure superficielle",
            type="Accident du travail", gravite="Modérée", date_incident=timezone.now() - timedelta(days=3),
            declarant=users["employe"],
            actions_correctives=[{
                "id": "a1", "description": "Remplacer les gants anti-coupure", "statut": "Planifiée",
                "date_limite": (aujourd_hui + timedelta(days=7)).isoformat(),
            }],
        )
        Risque.objects.create(
            created_by=qhse, titre="Exposition au bruit", description="Ligne d'embouteillage à 88 dB",
            type="Sécurité", categorie="Risque physique", probabilite="Élevée", gravite="Modérée",
            activite="Embouteillage",
        )
        Formation.objects.create(
            created_by=qhse, titre="Sensibilisation hygiène", description="Bonnes pratiques d'hygiène",
            type="Hygiène", categorie="Sensibilisation", date_planification=aujourd_hui + timedelta(days=10),
            duree=3, lieu="Interne", capacite=12, couts={"formateur": 300, "materiel": 50},
        )
        Conformite.objects.create(
            created_by=qhse, titre="Règlement (CE) 852/2004", description="Hygiène des denrées alimentaires",
            type="Réglementation", domaine="Hygiène", statut_conformite="Conforme", niveau_conformite="Bon",
        )
        return 5

    def _laboratoire(self, users):
        manager = users["manager"]
        plan = PlanControle.objects.create(
            created_by=manager, nom="Contrôle jus de pomme", type="Produit fini", frequence="Chaque lot",
            responsable=manager, statut="Actif",
            points_controle=[{"id": "ph", "nom": "pH", "seuil_min": 3.2, "seuil_max": 4.0, "obligatoire": True}],
        )
        echantillon = Echantillon.objects.create(
            created_by=manager, numero_lot="L2024-118", produit_nom="Jus de pomme 1L",
            type_echantillon="Produit fini", responsable_prelevement=users["employe"], poids_net=1000, unite="ml",
        )
        analyse = Analyse.objects.create(
            created_by=manager, nom="pH jus de pomme", type="Physico-chimique", categorie="pH",
            seuil_min=3.2, seuil_max=4.0, echantillon=echantillon, plan_controle=plan,
        )
        analyse.enregistrer_resultats(manager, 3.6)
        return 3

    def _qualite(self, users):
        manager, qhse = users["manager"], users["responsable_qhse"]
        aujourd_hui = timezone.localdate()

        matiere = MatierePremiere.objects.create(
            created_by=manager, nom="Sucre blanc", fournisseur_nom="Sucrerie du Nord", type_matiere="Végétale",
            unite="kg", stock_minimum=200,
        )
        matiere.ajouter_lot({
            "numero_lot": "SUC-0412", "quantite": 500, "statut": "En stock",
            "date_peremption": (aujourd_hui + timedelta(days=365)).isoformat(),
        }, manager)
        controle = ControleQualite.objects.create(
            created_by=manager, titre="Réception sucre SUC-0412", type="Réception matières premières",
            date_planification=aujourd_hui, controleur=qhse,
            criteres=[{"id": "humidite", "nom": "Humidité", "seuil_max": 0.1, "unite": "%"}],
        )
        controle.ajouter_resultat("humidite", 0.06, qhse)
        non_conformite = NonConformite.objects.create(
            created_by=qhse, titre="Étiquetage illisible", description="DLUO effacée sur 3 palettes",
            type="Produit", categorie="Mineure", gravite="Modérée", detecteur=qhse, methode_detection="Contrôle",
            impact={"qualite": {"cout": 120}},
        )
        DecisionQualite.objects.create(
            created_by=qhse, titre="Réétiquetage des palettes", type="Retraitement", contexte_type="Produit fini",
            non_conformite=non_conformite, decisionnaire=qhse,
            justification="Produit conforme, seul l'étiquetage est défaillant",
        )
        Tracabilite.objects.create(
            created_by=manager, type="Matière première", reference="SUC-0412", nom="Sucre blanc", lot="SUC-0412",
            origine={"fournisseur": "Sucrerie du Nord", "lot_fournisseur": "SN-88"},
        )
        return 5

    def _hse(self, users):
        manager = users["manager"]
        aujourd_hui = timezone.localdate()

        Hygiene.objects.create(
            created_by=manager, titre="Inspection zone de production", description="Contrôle hebdomadaire",
            type="Routine", zone="Atelier jus", date_planification=aujourd_hui, responsable=manager,
            points_controle=[
                {"id": "sols", "nom": "Propreté des sols"},
                {"id": "froid", "nom": "Température chambre froide", "seuil_min": 0, "seuil_max": 4, "unite": "°C"},
            ],
        )
        epi = EPI.objects.create(
            created_by=manager, nom="Gants anti-coupure", type="Gants", categorie="Protection des mains",
            unite="paire", quantite_totale=20, seuil_alerte=5, duree_vie=6,
        )
        epi.doter(users["employe"], 2, manager)
        ProduitChimique.objects.create(
            created_by=manager, nom="Soude caustique", type="Base", usage="Nettoyage", etat="Liquide",
            quantite_totale=50, seuil_alerte=10, date_reception=aujourd_hui, duree_conservation=24,
        )
        return 3
