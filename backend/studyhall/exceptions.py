"""
Taxonomie des erreurs du moteur de présences.

- ExternalSystemUnavailable : la base du contrôle d'accès est injoignable → le run de sync avorte
- PersistenceError          : échec d'écriture dans la base principale
- IdentityUnresolved        : badge externe sans élève lié → ignoré, pas une erreur
- ApprovalBoundaryViolation : passage antérieur à l'approbation du lien → ignoré
"""


class StudyHallError(Exception):
    """Classe de base des erreurs métier du moteur."""


class ExternalSystemUnavailable(StudyHallError):
    """Le système de contrôle d'accès ne répond pas (connexion ou requête)."""


class PersistenceError(StudyHallError):
    """Une écriture dans la base principale a échoué."""


class IdentityUnresolved(StudyHallError):
    """Aucun élève n'est lié à l'identifiant externe."""

    def __init__(self, access_user_id: str):
        super().__init__(f"Identifiant externe non lié : {access_user_id}")
        self.access_user_id = access_user_id


class ApprovalBoundaryViolation(StudyHallError):
    """Passage horodaté avant l'approbation du lien élève ↔ badge."""
