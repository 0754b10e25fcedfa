from .places import SavedPlacesRepository
from . import models

__all__ = ["SavedPlacesRepository", "models"]
