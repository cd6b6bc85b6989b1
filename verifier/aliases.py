"""
Field alias resolution: match an authoritative field name to one of a source's
spec keys when the two sides label the same quantity differently.
"""
from __future__ import annotations

import re
from typing import Iterable, Optional

_PARENS_RE = re.compile(r"\([^)]*\)")
_SEPARATORS_RE = re.compile(r"[_\s-]")

# Names within one group are interchangeable.
FIELD_ALIAS_GROUPS: tuple[tuple[str, ...], ...] = (
    ("battery_kwh", "battery_size", "battery_capacity", "battery", "usable_battery", "battery_capacity_kwh"),
    ("range", "range_km", "driving_range", "electric_range", "wltp_range", "claimed_range"),
    ("0-100", "0_100_kmh", "acceleration", "0-100_km/h", "acceleration_0_100"),
    ("top_speed", "max_speed", "maximum_speed"),
    ("power", "horsepower", "max_power", "power_hp", "output"),
    ("torque", "max_torque", "peak_torque"),
    ("dc_charging", "dc_fast_charging", "fast_charging", "dc_charge_power"),
    ("ac_charging", "ac_charge_power", "onboard_charger"),
    ("charging_time", "charge_time"),
    ("seats", "seating_capacity", "seating", "number_of_seats"),
    ("drivetrain", "drive_type", "drive", "driven_wheels"),
    ("fuel_type", "fuel", "powertrain", "engine_type"),
    ("transmission", "gearbox"),
    ("body_type", "body_style", "body"),
    ("warranty", "battery_warranty"),
)


def normalize_field_name(name: str) -> str:
    """Strip parenthetical qualifiers and separators, lowercase."""
    return _SEPARATORS_RE.sub("", _PARENS_RE.sub("", name)).lower()


def _build_group_index() -> dict[str, frozenset[str]]:
    index: dict[str, frozenset[str]] = {}
    for group in FIELD_ALIAS_GROUPS:
        names = frozenset(normalize_field_name(n) for n in group)
        for name in names:
            index[name] = index.get(name, frozenset()) | names
    return index


_GROUP_INDEX = _build_group_index()


def alias_group(field: str) -> frozenset[str]:
    """Normalized names interchangeable with `field`, including itself."""
    normalized = normalize_field_name(field)
    return _GROUP_INDEX.get(normalized, frozenset({normalized}))


def resolve_field(target: str, keys: Iterable[str]) -> Optional[str]:
    """
    The key in `keys` that names `target`: exact match after normalization
    first, then any member of the target's alias group. None if unmatched.
    """
    by_normalized: dict[str, str] = {}
    for key in keys:
        by_normalized.setdefault(normalize_field_name(key), key)

    normalized = normalize_field_name(target)
    if normalized in by_normalized:
        return by_normalized[normalized]
    for alias in sorted(alias_group(target)):
        if alias in by_normalized:
            return by_normalized[alias]
    return None
