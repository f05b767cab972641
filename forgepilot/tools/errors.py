from __future__ import annotations

class ToolSecurityError(Exception):
    """Base pour les refus de sécurité des outils (écriture, commande)."""

class FileSecurityError(ToolSecurityError):
    """Chemin refusé : hors workspace alors que les écritures sont confinées."""

class ProcessSecurityError(ToolSecurityError):
    """Exécution de processus refusée par la politique."""

class ShellSecurityError(ProcessSecurityError):
    """Commande absente de l'allowlist shell du profil."""
