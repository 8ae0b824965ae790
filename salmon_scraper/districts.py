"""
Canonical Bristol Bay fishing districts.

The harvest page spells district names in more than one way (for example
"Naknek-Kvichak" in one table and "Naknek/Kvichak" in another). Every lookup
in the project goes through `DISTRICTS` so that the extractor and the storage
layer agree on ids and display names.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class District:
    id: str
    name: str
    alternates: Tuple[str, ...] = ()

    @property
    def labels(self) -> Tuple[str, ...]:
        return (self.name,) + self.alternates

    @property
    def stem(self) -> str:
        """Portion of the display name before the first '-' or '/'."""
        return re.split(r"[-/]", self.name, maxsplit=1)[0]


DISTRICTS: Tuple[District, ...] = (
    District("ugashik", "Ugashik"),
    District("egegik", "Egegik"),
    District("naknek", "Naknek-Kvichak", alternates=("Naknek/Kvichak",)),
    District("nushagak", "Nushagak"),
    District("togiak", "Togiak"),
)

_BY_ID = {district.id: district for district in DISTRICTS}


def canonicalize_district(label: Optional[str]) -> Optional[str]:
    """
    Map a district label as rendered on the page to its canonical id.

    Exact (case-sensitive) label matches win; otherwise the first district
    whose name stem occurs in the label is used. Returns None when nothing
    matches so callers can skip the row.
    """
    if not label:
        return None
    text = label.strip()
    if not text:
        return None

    for district in DISTRICTS:
        if text in district.labels:
            return district.id

    for district in DISTRICTS:
        if district.stem and district.stem in text:
            return district.id
    return None


def district_name(district_id: str) -> str:
    district = _BY_ID.get(district_id)
    return district.name if district else district_id
