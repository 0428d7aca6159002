"""
Configuration registry
======================

The registry is the ordered universe of diseases and locations that every
other component keys against. It is an immutable snapshot: `add_*` and
`remove_*` validate first and return a NEW registry, so a report computed
against an older snapshot can never observe a half-applied change.

Ids are derived from free-text display names:

- location `"EPSP: Bab El Oued"` -> `EPSP_Bab_El_Oued`
- disease  `"Dengue fever"`      -> `Dengue_fever`

The same rule is used when saving and when reading records, so it is part of
the persisted format. Two display names that derive the same location id are
rejected instead of being merged.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple
import logging
import re

from .errors import ValidationError

logger = logging.getLogger(__name__)

LOCATION_SEPARATOR = ":"


def location_id(display_name: str) -> str:
    """Canonical id of a location display name."""
    return re.sub(r"[^A-Za-z0-9]+", "_", str(display_name)).strip("_")


def disease_id(name: str) -> str:
    """Canonical id of a disease name."""
    kept = re.sub(r"[^A-Za-z0-9\s]", "", str(name)).strip()
    return re.sub(r"\s+", "_", kept)


def disease_label(did: str) -> str:
    return did.replace("_", " ")


def commune_label(display_name: str) -> str:
    """Short chart label: the commune part after the facility prefix."""
    facility, sep, commune = display_name.partition(LOCATION_SEPARATOR)
    return commune.strip() if sep and commune.strip() else display_name


@dataclass(frozen=True)
class Location:
    display_name: str
    location_id: str


@dataclass(frozen=True)
class ConfigRegistry:
    """Ordered diseases and locations (immutable snapshot)."""
    diseases: Tuple[str, ...] = ()
    locations: Tuple[Location, ...] = ()

    # ---------------- Lookups ----------------
    @property
    def location_ids(self) -> Tuple[str, ...]:
        return tuple(loc.location_id for loc in self.locations)

    @property
    def display_names(self) -> Tuple[str, ...]:
        return tuple(loc.display_name for loc in self.locations)

    def display_name(self, lid: str) -> Optional[str]:
        for loc in self.locations:
            if loc.location_id == lid:
                return loc.display_name
        return None

    def id_table(self) -> Dict[str, str]:
        """Display name -> location id (one-to-one)."""
        return {loc.display_name: loc.location_id for loc in self.locations}

    def is_empty(self) -> bool:
        return not self.diseases or not self.locations

    # ---------------- Diseases ----------------
    def add_disease(self, name: str) -> "ConfigRegistry":
        name = str(name or "").strip()
        if not name:
            raise ValidationError("Disease name is empty.")
        did = disease_id(name)
        if not did:
            raise ValidationError(f"Disease name {name!r} has no usable characters.")
        if did in self.diseases:
            raise ValidationError(
                f"Disease {name!r} already exists or generates a duplicate id ({did})."
            )
        return ConfigRegistry(diseases=self.diseases + (did,), locations=self.locations)

    def remove_disease(self, did: str) -> "ConfigRegistry":
        if did not in self.diseases:
            raise ValidationError(f"Unknown disease: {did!r}")
        return ConfigRegistry(
            diseases=tuple(d for d in self.diseases if d != did),
            locations=self.locations,
        )

    # ---------------- Locations ----------------
    def add_location(self, display_name: str) -> "ConfigRegistry":
        name = str(display_name or "").strip()
        if not name:
            raise ValidationError("Location name is empty.")
        facility, sep, commune = name.partition(LOCATION_SEPARATOR)
        if not sep or not facility.strip() or not commune.strip():
            raise ValidationError(
                "Location must be in the format 'EPSP: Commune/Secteur'."
            )
        if name in self.display_names:
            raise ValidationError(f"Location {name!r} already exists.")
        lid = location_id(name)
        clash = self.display_name(lid)
        if clash is not None:
            raise ValidationError(
                f"Location {name!r} derives id {lid!r}, already used by {clash!r}."
            )
        return ConfigRegistry(
            diseases=self.diseases,
            locations=self.locations + (Location(name, lid),),
        )

    def remove_location(self, display_name: str) -> "ConfigRegistry":
        if display_name not in self.display_names:
            raise ValidationError(f"Unknown location: {display_name!r}")
        return ConfigRegistry(
            diseases=self.diseases,
            locations=tuple(l for l in self.locations if l.display_name != display_name),
        )

    # ---------------- Wire format ----------------
    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "ConfigRegistry":
        """Build a registry from a `GET /config` body.

        Invalid or duplicate entries are skipped with a warning so that one
        bad line cannot hide the whole configuration.
        """
        reg = cls()
        if not payload:
            return reg
        # the backend wraps the config in {"data": {...}}
        if "data" in payload and isinstance(payload["data"], Mapping):
            payload = payload["data"]
        for d in payload.get("diseases") or []:
            try:
                reg = reg._add_disease_id(str(d))
            except ValidationError as e:
                logger.warning("Skipping disease %r from config: %s", d, e)
        for l in payload.get("locations") or []:
            try:
                reg = reg.add_location(l)
            except ValidationError as e:
                logger.warning("Skipping location %r from config: %s", l, e)
        return reg

    def _add_disease_id(self, did: str) -> "ConfigRegistry":
        # stored ids are already canonical; re-derive to reject junk
        canonical = disease_id(did.replace("_", " "))
        if not did or canonical != did:
            raise ValidationError(f"{did!r} is not a canonical disease id.")
        if did in self.diseases:
            raise ValidationError(f"Duplicate disease id {did!r}.")
        return ConfigRegistry(diseases=self.diseases + (did,), locations=self.locations)

    def to_payload(self) -> Dict[str, List[str]]:
        """Body of `POST /config`."""
        return {"diseases": list(self.diseases), "locations": list(self.display_names)}
