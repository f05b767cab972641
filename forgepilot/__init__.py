"""forgepilot : exécute les consignes d'un LLM (éditions de fichiers, commandes) étape par étape."""

__version__ = "0.4.0"
