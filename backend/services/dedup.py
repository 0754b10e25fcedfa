from __future__ import annotations

from typing import Iterable, List, Sequence

from domain.models import Place
from services.places_types import AreaElement


def filter_known_places(elements: Iterable[AreaElement], saved: Sequence[Place]) -> List[AreaElement]:
    """
    Drop discovered elements whose name is already in the saved set.

    The comparison is exact and case-sensitive: "merlion park" does not
    shadow a saved "Merlion Park".
    """
    known = {place.name for place in saved}
    return [el for el in elements if el.name not in known]
