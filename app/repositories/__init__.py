"""Persistence of completed analyses"""
from app.repositories.analysis_repository import AnalysisRepository

__all__ = ["AnalysisRepository"]
