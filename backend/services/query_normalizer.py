from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class NormalizedQuery:
    text: str  # trimmed, original case; sent to remote services
    folded: str  # case-folded; used for local comparisons

    def matches(self, name: Optional[str]) -> bool:
        """Case-insensitive substring test against a place name."""
        return bool(name) and self.folded in name.casefold()


def normalize_query(raw: Optional[str]) -> Optional[NormalizedQuery]:
    """Trim free text; None when nothing is left (callers treat that as a no-op)."""
    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    return NormalizedQuery(text=text, folded=text.casefold())
