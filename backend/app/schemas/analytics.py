"""
Schémas Pydantic pour le tableau de bord statistique d'une classe.
"""

import uuid

from pydantic import BaseModel


class StudentScore(BaseModel):
    score: int
    attendance: int  # en pourcentage


class StudentAnalytics(BaseModel):
    """Ligne affichée par élève inscrit : {id, name, score, attendance}."""
    id: uuid.UUID
    name: str
    score: int
    attendance: int
