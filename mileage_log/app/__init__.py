"""
App module for the Mileage Log application.
Contains the Qt-side import/export coordinator.
"""

from .exchange import ExchangeCoordinator, ImportResult, ImportWorker

__all__ = [
    "ExchangeCoordinator",
    "ImportResult",
    "ImportWorker",
]
