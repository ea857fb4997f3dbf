"""
Structure names, metadata and round-trip leg costs.

Normalization produces the grouping key for FIFO books and the cost lookup,
so two spellings of the same structure must normalize identically.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from spreadbook.domain.models import StructureMetadata, Trade

logger = logging.getLogger(__name__)

CUSTOM_STRUCTURES_KEY = "custom_structures"

DEFAULT_RT_LEGS = 1

# RT legs per structure on ENTRY; exit is charged the same legs again.
STRUCTURE_RT_LEGS: Dict[str, float] = {
    # SO3 3mo Calendars
    "SO3 Mar26-Jun26 Calendar": 1,
    "SO3 Jun26-Sep26 Calendar": 1,
    "SO3 Sep26-Dec26 Calendar": 1,
    "SO3 Dec26-Mar27 Calendar": 1,
    "SO3 Mar27-Jun27 Calendar": 1,
    "SO3 Jun27-Sep27 Calendar": 1,
    "SO3 Sep27-Dec27 Calendar": 1,
    "SO3 Dec27-Mar28 Calendar": 1,
    # SO3 6mo Calendars
    "SO3 Mar26-Sep26 Calendar": 1,
    "SO3 Jun26-Dec26 Calendar": 1,
    "SO3 Sep26-Mar27 Calendar": 1,
    "SO3 Dec26-Jun27 Calendar": 1,
    "SO3 Mar27-Sep27 Calendar": 1,
    "SO3 Jun27-Dec27 Calendar": 1,
    # SO3 9mo Calendars
    "SO3 Mar26-Dec26 Calendar": 1,
    "SO3 Jun26-Mar27 Calendar": 1,
    "SO3 Sep26-Jun27 Calendar": 1,
    "SO3 Dec26-Sep27 Calendar": 1,
    "SO3 Mar27-Dec27 Calendar": 1,
    "SO3 Jun27-Mar28 Calendar": 1,
    "SO3 Sep27-Jun28 Calendar": 1,
    # SO3 3mo Butterflies
    "SO3 Sep25 3mo Butterfly": 2,
    "SO3 Mar26 3mo Butterfly": 2,
    "SO3 Jun26 3mo Butterfly": 2,
    "SO3 Sep26 3mo Butterfly": 2,
    "SO3 Dec26 3mo Butterfly": 2,
    "SO3 Mar27 3mo Butterfly": 2,
    "SO3 Jun27 3mo Butterfly": 2,
    "SO3 Sep27 3mo Butterfly": 2,
    # SON D-Flies
    "SON Mar26 D-Fly": 4,
    "SON Jun26 D-Fly": 4,
    "SON Sep26 D-Fly": 4,
    "SON Dec26 D-Fly": 4,
    "SON Mar27 D-Fly": 4,
    "SON Jun27 D-Fly": 4,
    # SON 3 Flies
    "SON Mar26 3 Fly": 2,
    "SON Jun26 3 Fly": 2,
    "SON Sep26 3 Fly": 2,
    "SON Dec26 3 Fly": 2,
    "SON Mar27 3 Fly": 2,
    "SON Jun27 3 Fly": 2,
    "SON Sep27 3 Fly": 2,
    # SON 3 D-Flies
    "SON Mar26 3 D-Fly": 4,
    "SON Jun26 3 D-Fly": 4,
    "SON Sep26 3 D-Fly": 4,
    "SON Dec26 3 D-Fly": 4,
    # SON Fly Condors
    "SON Sep26 Fly Condor": 6,
    "SON Dec26 Fly Condor": 6,
    "SON Mar27 Fly Condor": 6,
    "SON Jun27 Fly Condor": 6,
    # SO3 3mo Condors
    "SO3 Sep26 3mo Condor": 2,
    "SO3 Dec26 3mo Condor": 2,
    "SO3 Mar27 3mo Condor": 2,
    "SO3 Jun27 3mo Condor": 2,
    # Outrights
    "SA3 Dec25": 0.5,
    "ER3 Dec25": 0.5,
}

# Fallback for names in neither table; evaluated top-down on the lowercased name.
LEG_PATTERN_RULES: List[Tuple[Tuple[str, ...], float]] = [
    (("fly condor",), 6),
    (("3 d-fly", "3 d fly"), 4),
    (("d-fly", "d fly"), 4),
    (("3 fly",), 2),
    (("butterfly",), 2),
    (("condor",), 2),
    (("calendar",), 1),
]

# Structure type by substring, most specific first. Calendars get their span appended.
TYPE_RULES: List[Tuple[str, str]] = [
    ("Fly Condor", "Fly Condor"),
    ("3 D-Fly", "3 D-Fly"),
    ("3 Fly", "3 Fly"),
    ("D-Fly", "D-Fly"),
    ("3mo Butterfly", "3mo Butterfly"),
    ("3mo Condor", "3mo Condor"),
    ("Condor", "Condor"),
    ("Calendar", "Calendar"),
]

OUTRIGHT_PREFIXES = ("SA3", "ER3")

# Applied in order: each fixup relies on the ones before it.
NORMALIZATION_RULES: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"D[-\s]?fly", re.IGNORECASE), "D-Fly"),
    (re.compile(r"3\s*D[-\s]?fly", re.IGNORECASE), "3 D-Fly"),
    (re.compile(r"3\s+fly(?!\s*Condor)(?!\s*D)", re.IGNORECASE), "3 Fly"),
    (re.compile(r"fly\s*condor", re.IGNORECASE), "Fly Condor"),
    (re.compile(r"3mo\s*butterfly", re.IGNORECASE), "3mo Butterfly"),
    (re.compile(r"3mo\s*condor", re.IGNORECASE), "3mo Condor"),
    (re.compile(r"[Cc]alendar"), "Calendar"),
    (re.compile(r"[Bb]utterfly"), "Butterfly"),
    (re.compile(r"[Cc]ondor"), "Condor"),
    (re.compile(r"(\w{3}\d{2})\s*[–—-]\s*(?=\w{3}\d{2})"), r"\1-"),
]

INSTRUMENT_RE = re.compile(r"^(SO3|SON|SA3|ER3)")
TENOR_RE = re.compile(r"((?:Mar|Jun|Sep|Dec)\d{2})")
CALENDAR_TENORS_RE = re.compile(r"(Mar|Jun|Sep|Dec)(\d{2})-(Mar|Jun|Sep|Dec)(\d{2})")
QUARTER_MONTHS = ["Mar", "Jun", "Sep", "Dec"]
CALENDAR_SPANS = (3, 6, 9, 12)

COMMON_STRUCTURES = [
    "SO3 Mar26-Jun26 Calendar",
    "SO3 Jun26-Sep26 Calendar",
    "SO3 Sep26-Dec26 Calendar",
    "SO3 Mar26 3mo Butterfly",
    "SO3 Jun26 3mo Butterfly",
    "SON Sep26 D-Fly",
    "SON Dec26 D-Fly",
    "SON Mar27 D-Fly",
    "SON Sep26 3 Fly",
    "SON Dec26 3 Fly",
    "SON Sep26 Fly Condor",
]


class StructureConfigError(ValueError):
    """Invalid custom structure definition."""


def normalize_structure_name(structure: Optional[str]) -> str:
    """Canonical spelling of a structure name (idempotent)."""
    if not structure:
        return ""
    normalized = structure.strip()
    for pattern, replacement in NORMALIZATION_RULES:
        normalized = pattern.sub(replacement, normalized)
    return normalized


def get_calendar_span(structure_name: str) -> Optional[int]:
    """
    Calendar span in months from the two tenor codes, bucketed up to 3/6/9/12.
    Returns None when the name has no tenor pair.
    """
    match = CALENDAR_TENORS_RE.search(structure_name)
    if not match:
        return None

    front_month, front_year, back_month, back_year = match.groups()
    year_diff = int(back_year) - int(front_year)
    quarter_diff = QUARTER_MONTHS.index(back_month) - QUARTER_MONTHS.index(front_month) + year_diff * 4
    if quarter_diff < 0:
        quarter_diff += 4

    month_diff = quarter_diff * 3
    for span in CALENDAR_SPANS:
        if month_diff <= span:
            return span
    return CALENDAR_SPANS[-1]


def parse_structure_metadata(structure_name: str) -> StructureMetadata:
    """Extract instrument, tenor, type and calendar span from a normalized name."""
    instrument_match = INSTRUMENT_RE.match(structure_name)
    instrument = instrument_match.group(1) if instrument_match else ""
    tenor = "-".join(TENOR_RE.findall(structure_name))

    calendar_span = None
    structure_type = None
    for keyword, result in TYPE_RULES:
        if keyword in structure_name:
            structure_type = result
            break

    if structure_type == "Calendar":
        calendar_span = get_calendar_span(structure_name)
        if calendar_span:
            structure_type = f"{calendar_span} Month Calendar"
    elif structure_type is None:
        structure_type = "Outright" if structure_name.startswith(OUTRIGHT_PREFIXES) else "Unknown"

    return StructureMetadata(
        full_name=structure_name,
        instrument=instrument,
        tenor=tenor,
        type=structure_type,
        calendar_span=calendar_span,
    )


class StructureCostTable:
    """
    Built-in RT legs per structure plus a user-defined overlay.

    Only the custom overlay is mutable. When bound to a key-value store, every
    add/remove writes the overlay back so it survives restarts.
    """

    def __init__(
        self,
        custom: Optional[Dict[str, float]] = None,
        store=None,
        builtin: Optional[Dict[str, float]] = None,
    ):
        self._builtin = dict(STRUCTURE_RT_LEGS if builtin is None else builtin)
        self._custom = dict(custom or {})
        self._store = store

    @classmethod
    def load(cls, store) -> "StructureCostTable":
        """Read the custom overlay once from the store."""
        saved = store.get(CUSTOM_STRUCTURES_KEY) or {}
        custom = {}
        if isinstance(saved, dict):
            for name, legs in saved.items():
                try:
                    custom[name] = _validate_legs(legs)
                except StructureConfigError as e:
                    logger.error("Ignoring stored custom structure %r: %s", name, e)
        else:
            logger.error("Failed to load custom structures: unexpected %s", type(saved).__name__)
        return cls(custom=custom, store=store)

    def snapshot(self) -> "StructureCostTable":
        """Detached copy for use during a single computation."""
        return StructureCostTable(custom=self._custom, builtin=self._builtin)

    @property
    def custom_structures(self) -> Dict[str, float]:
        return dict(self._custom)

    def add(self, name: str, rt_legs) -> None:
        name = (name or "").strip()
        if not name:
            raise StructureConfigError("Structure name is required")
        self._custom[name] = _validate_legs(rt_legs)
        self._persist()

    def remove(self, name: str) -> None:
        if self._custom.pop(name, None) is not None:
            self._persist()

    def legs_for(self, structure_name: str) -> float:
        """RT legs on entry for a structure name."""
        if structure_name in self._custom:
            return self._custom[structure_name]
        if structure_name in self._builtin:
            return self._builtin[structure_name]

        normalized = structure_name.lower().strip()
        for table in (self._builtin, self._custom):
            for key, value in table.items():
                if key.lower() == normalized:
                    return value

        for keywords, legs in LEG_PATTERN_RULES:
            if any(keyword in normalized for keyword in keywords):
                return legs

        logger.warning("Unknown structure RT for: %s, defaulting to %s", structure_name, DEFAULT_RT_LEGS)
        return DEFAULT_RT_LEGS

    def _persist(self) -> None:
        if self._store is not None:
            self._store.set(CUSTOM_STRUCTURES_KEY, self._custom)


def _validate_legs(rt_legs) -> float:
    try:
        legs = float(rt_legs)
    except (TypeError, ValueError):
        raise StructureConfigError(f"RT legs must be a number, got {rt_legs!r}")
    if legs <= 0:
        raise StructureConfigError(f"RT legs must be positive, got {rt_legs!r}")
    return int(legs) if legs.is_integer() else legs


@dataclass
class StructureGroup:
    """Trades of one structure, in log order."""
    name: str
    metadata: StructureMetadata
    trades: List[Trade] = field(default_factory=list)


def group_trades_by_structure(trades: Iterable[Trade]) -> Dict[str, StructureGroup]:
    """Partition trades by normalized structure, preserving entry order."""
    groups: Dict[str, StructureGroup] = {}
    for trade in trades:
        group = groups.get(trade.structure)
        if group is None:
            group = StructureGroup(name=trade.structure, metadata=parse_structure_metadata(trade.structure))
            groups[trade.structure] = group
        group.trades.append(trade)
    return groups


def known_structures(existing_trades: Iterable[Trade] = ()) -> List[str]:
    """Common structures plus those already in the log, for autocomplete."""
    structures = set(COMMON_STRUCTURES)
    structures.update(t.structure for t in existing_trades if t.structure)
    return sorted(structures)
