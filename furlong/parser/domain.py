"""Domain value parsers: surfaces, conditions, classes, odds, distances.

Pure functions over raw field text. Unrecognised codes map to a conservative
default rather than raising; missing odds are a valid state (decimal 0).
"""

import re
from collections import Counter
from fractions import Fraction
from typing import Iterable, Optional

from furlong.models import FINISH_SENTINEL, Equipment, Medication, PastPerformance

# ──────────────────────────────────────────────
# Code tables
# ──────────────────────────────────────────────

SURFACE_CODES = {
    "D": "dirt",
    "d": "dirt",      # inner dirt
    "T": "turf",
    "t": "turf",      # inner turf
    "A": "synthetic",
    "S": "synthetic",
    "AW": "all-weather",
}

CONDITION_CODES = {
    "FT": "fast",
    "GD": "good",
    "MY": "muddy",
    "SY": "sloppy",
    "SL": "slow",
    "WF": "wet-fast",
    "HY": "heavy",
    "FM": "firm",
    "YL": "yielding",
    "SF": "soft",
    "FR": "frozen",
}

WET_CONDITIONS = frozenset({"muddy", "sloppy", "slow", "wet-fast", "heavy", "yielding", "soft"})

# Race type codes, most specific first
CLASSIFICATION_CODES = {
    "G1": "stakes-graded-1",
    "G2": "stakes-graded-2",
    "G3": "stakes-graded-3",
    "L": "stakes-listed",
    "N": "stakes",
    "H": "handicap",
    "AO": "allowance-optional-claiming",
    "CO": "allowance-optional-claiming",
    "A": "allowance",
    "R": "starter-allowance",
    "T": "starter-allowance",
    "C": "claiming",
    "S": "maiden",
    "M": "maiden-claiming",
    "MO": "maiden-claiming",
}

# Keyword fallback over free-text conditions; order matters
_CLASS_KEYWORDS = [
    (re.compile(r"\bG(?:RADE)?\s*1\b|\bGR\.?\s*I\b(?!I)"), "stakes-graded-1"),
    (re.compile(r"\bG(?:RADE)?\s*2\b|\bGR\.?\s*II\b(?!I)"), "stakes-graded-2"),
    (re.compile(r"\bG(?:RADE)?\s*3\b|\bGR\.?\s*III\b"), "stakes-graded-3"),
    (re.compile(r"\bLISTED\b"), "stakes-listed"),
    (re.compile(r"\bSTAKES?\b|\bSTK\b"), "stakes"),
    (re.compile(r"\bHANDICAP\b|\bHCP\b"), "handicap"),
    (re.compile(r"\bMAIDEN\s+CLAIMING\b|\bMDN?\s*CLM\b|\bMCL\b"), "maiden-claiming"),
    (re.compile(r"\bMAIDEN\b|\bMDN\b|\bMSW\b"), "maiden"),
    (re.compile(r"\bOPTIONAL\s+CLAIMING\b|\bOC\b"), "allowance-optional-claiming"),
    (re.compile(r"\bSTARTER\b"), "starter-allowance"),
    (re.compile(r"\bALLOWANCE\b|\bALW\b"), "allowance"),
    (re.compile(r"\bCLAIMING\b|\bCLM\b"), "claiming"),
]

CLASS_HIERARCHY = {
    "maiden-claiming": 1,
    "maiden": 2,
    "claiming": 3,
    "starter-allowance": 4,
    "allowance": 5,
    "allowance-optional-claiming": 6,
    "handicap": 7,
    "stakes": 8,
    "stakes-listed": 9,
    "stakes-graded-3": 10,
    "stakes-graded-2": 11,
    "stakes-graded-1": 12,
    "unknown": 3,  # treat as claiming level
}

SEX_CODES = {
    "C": "colt",
    "F": "filly",
    "G": "gelding",
    "H": "horse",
    "M": "mare",
    "R": "ridgling",
}

RUNNING_STYLE_NAMES = {
    "E": "Early",
    "E/P": "Early/Presser",
    "P": "Presser",
    "S": "Sustained",
    "C": "Closer",
    "U": "Unknown",
}

WORKOUT_TYPES = {
    "B": "breeze",
    "H": "handily",
    "D": "driving",
    "E": "easy",
}

SPRINT_THRESHOLD_FURLONGS = 8


def parse_surface(code: str) -> str:
    raw = (code or "").strip()
    if raw in SURFACE_CODES:
        return SURFACE_CODES[raw]
    upper = raw.upper()
    if upper in SURFACE_CODES:
        return SURFACE_CODES[upper]
    lower = raw.lower()
    if lower in ("dirt", "turf", "synthetic", "all-weather"):
        return lower
    if "TURF" in upper or upper == "INNER TURF":
        return "turf"
    if "SYNTH" in upper or "TAPETA" in upper or "POLY" in upper:
        return "synthetic"
    return "dirt"


def parse_track_condition(code: str) -> str:
    upper = (code or "").strip().upper()
    if upper in CONDITION_CODES:
        return CONDITION_CODES[upper]
    lower = upper.lower()
    if lower in CONDITION_CODES.values():
        return lower
    return "fast"


def is_wet_condition(condition: str) -> bool:
    return condition in WET_CONDITIONS


def parse_classification(race_type: str, conditions: str = "") -> str:
    """Map a race-type code (or, failing that, free-text conditions) to a class."""
    code = (race_type or "").strip().upper()
    if code in CLASSIFICATION_CODES:
        return CLASSIFICATION_CODES[code]
    for text in (code, (conditions or "").upper()):
        if not text:
            continue
        for pattern, label in _CLASS_KEYWORDS:
            if pattern.search(text):
                return label
    return "unknown"


def class_level(classification: str) -> int:
    return CLASS_HIERARCHY.get(classification, CLASS_HIERARCHY["unknown"])


def parse_sex(code: str) -> str:
    raw = (code or "").strip().upper()
    if raw[:1] in SEX_CODES:
        return SEX_CODES[raw[:1]]
    return "unknown"


# ──────────────────────────────────────────────
# Equipment / medication
# ──────────────────────────────────────────────

_EQUIPMENT_PATTERNS = {
    "blinkers_off": re.compile(r"\bBLINKERS?\s+OFF\b|\bBO\b"),
    "blinkers": re.compile(r"\bBLINKERS?\b|\bB\b"),
    "front_bandages": re.compile(r"\bFRONT\s+BANDAGES?\b|\bF\b"),
    "tongue_tie": re.compile(r"\bTONGUE\s+TIE\b|\bTT\b"),
    "nasal_strip": re.compile(r"\bNASAL\s+STRIP\b|\bNS\b"),
    "shadow_roll": re.compile(r"\bSHADOW\s+ROLL\b|\bSR\b"),
    "bar_shoes": re.compile(r"\bBAR\s+SHOES?\b|\bBS\b"),
    "mud_caulks": re.compile(r"\bMUD\s+CAULKS?\b|\bMC\b"),
}

_FIRST_TIME_RE = re.compile(r"1ST|FIRST")

# Numeric equipment-change codes used by the export
_EQUIPMENT_CHANGE_CODES = {"1": "blinkers", "2": "blinkers_off"}


def parse_equipment(raw: str) -> Equipment:
    """Detect equipment tokens in a raw equipment string.

    First-time equipment is inferred when the string carries "1ST"/"FIRST"
    together with a detected flag.
    """
    text = (raw or "").strip()
    upper = text.upper()
    equipment = Equipment(raw=text)
    if not upper:
        return equipment

    if upper in _EQUIPMENT_CHANGE_CODES:
        name = _EQUIPMENT_CHANGE_CODES[upper]
        setattr(equipment, name, True)
        if name == "blinkers":
            equipment.first_time.append(name)
        return equipment

    scrubbed = upper
    for name, pattern in _EQUIPMENT_PATTERNS.items():
        if pattern.search(scrubbed):
            setattr(equipment, name, True)
            # "BLINKERS OFF" must not also count as blinkers on
            scrubbed = pattern.sub(" ", scrubbed) if name == "blinkers_off" else scrubbed

    if _FIRST_TIME_RE.search(upper):
        equipment.first_time = [
            name for name in _EQUIPMENT_PATTERNS
            if name != "blinkers_off" and getattr(equipment, name)
        ]
    return equipment


_LASIX_OFF_RE = re.compile(r"\bLASIX\s+OFF\b|\bLO\b")
_LASIX_RE = re.compile(r"\bLASIX\b|\bL\b|\bL1\b|\bBL\b")
_BUTE_RE = re.compile(r"\bBUTE\b|\bB\b|\bBL\b")
_FIRST_LASIX_RE = re.compile(r"(?:1ST|FIRST)\s*(?:TIME\s*)?(?:LASIX|L)\b|\bL1\b")

# Numeric medication codes: 1 lasix, 2 bute, 3 both, 4 first lasix, 5 first lasix + bute
_MEDICATION_CODES = {
    "1": (True, False, False),
    "2": (False, False, True),
    "3": (True, False, True),
    "4": (True, True, False),
    "5": (True, True, True),
}


def parse_medication(raw: str, first_time_lasix_flag: bool = False) -> Medication:
    text = (raw or "").strip()
    upper = text.upper()
    med = Medication(raw=text)
    if upper in _MEDICATION_CODES:
        med.lasix, med.first_time_lasix, med.bute = _MEDICATION_CODES[upper]
    elif upper:
        med.lasix_off = bool(_LASIX_OFF_RE.search(upper))
        scrubbed = _LASIX_OFF_RE.sub(" ", upper)
        med.lasix = bool(_LASIX_RE.search(scrubbed))
        med.bute = bool(_BUTE_RE.search(scrubbed))
        med.first_time_lasix = bool(_FIRST_LASIX_RE.search(scrubbed))
    if first_time_lasix_flag:
        med.lasix = True
        med.first_time_lasix = True
    return med


# ──────────────────────────────────────────────
# Odds
# ──────────────────────────────────────────────

_EVEN_ODDS = ("even", "evens", "evn", "e")
_FRACTIONAL_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*[-/:]\s*(\d+(?:\.\d+)?)$")
_DECIMAL_RE = re.compile(r"^\d*\.\d+$")
_WHOLE_RE = re.compile(r"^\d+$")


def parse_odds(raw: str) -> tuple[str, float]:
    """Normalise an odds string and return (odds, fractional ratio).

    "5-1" -> ("5-1", 5.0), "7/2" -> ("7-2", 3.5), "even" -> ("1-1", 1.0),
    "10" -> ("10-1", 10.0), "2.5" -> ("2.5", 2.5). Anything unparseable
    returns ratio 0.0, which downstream treats as "no odds".
    """
    text = (raw or "").strip()
    if not text:
        return "", 0.0
    lower = text.lower()
    if lower in _EVEN_ODDS:
        return "1-1", 1.0

    match = _FRACTIONAL_RE.match(lower)
    if match:
        num, den = float(match.group(1)), float(match.group(2))
        if den <= 0:
            return text, 0.0
        return f"{match.group(1)}-{match.group(2)}", num / den
    if _DECIMAL_RE.match(lower):
        return text, float(lower)
    if _WHOLE_RE.match(lower):
        return f"{int(lower)}-1", float(int(lower))
    return text, 0.0


def odds_to_decimal(raw: str) -> float:
    return parse_odds(raw)[1]


def odds_to_probability(ratio: float) -> float:
    """Market-implied win probability for a fractional ratio (0 when unknown)."""
    if ratio <= 0:
        return 0.0
    return 1.0 / (ratio + 1.0)


# ──────────────────────────────────────────────
# Distance
# ──────────────────────────────────────────────

def parse_distance(furlongs: float = 0.0, yards: float = 0.0) -> float:
    """Distance in furlongs; furlongs preferred, else yards / 220."""
    if furlongs and furlongs > 0:
        return float(furlongs)
    if yards and yards > 0:
        return round(yards / 220.0, 2)
    return 0.0


def format_distance(furlongs: float) -> str:
    """Readable distance: fractional miles above 8f, fractional furlongs below."""
    if furlongs <= 0:
        return "Unknown"
    if furlongs > SPRINT_THRESHOLD_FURLONGS:
        miles = furlongs / 8.0
        whole = int(miles)
        sixteenths = round((miles - whole) * 16)
        if sixteenths == 16:
            whole, sixteenths = whole + 1, 0
        if sixteenths == 0:
            return f"{whole} mile" if whole == 1 else f"{whole} miles"
        frac = Fraction(sixteenths, 16)
        return f"{whole} {frac.numerator}/{frac.denominator} miles"

    whole = int(furlongs)
    quarters = round((furlongs - whole) * 4)
    if quarters == 4:
        whole, quarters = whole + 1, 0
    if quarters == 0:
        return f"{whole} furlongs"
    frac = Fraction(quarters, 4)
    return f"{whole} {frac.numerator}/{frac.denominator} furlongs"


def distance_category(furlongs: float) -> str:
    if furlongs <= 0:
        return "unknown"
    return "sprint" if furlongs < SPRINT_THRESHOLD_FURLONGS else "route"


def parse_workout_type(code: str) -> str:
    upper = (code or "").strip().upper()
    if not upper:
        return "unknown"
    if upper.lower() in WORKOUT_TYPES.values():
        return upper.lower()
    return WORKOUT_TYPES.get(upper[0], "unknown")


_WORK_TIME_RE = re.compile(r"^(?:(\d+):)?(\d+(?:\.\d+)?)$")


def parse_time_seconds(raw: str) -> float:
    """Seconds from "59.2", "1:12.40" or a bare number; 0 when unreadable."""
    match = _WORK_TIME_RE.match((raw or "").strip().lstrip("-"))
    if not match:
        return 0.0
    minutes = int(match.group(1)) if match.group(1) else 0
    return round(minutes * 60 + float(match.group(2)), 2)


# ──────────────────────────────────────────────
# Running style
# ──────────────────────────────────────────────

_STYLE_ALIASES = {"E": "E", "E/P": "E/P", "EP": "E/P", "P": "P", "S": "S", "C": "C"}


def normalize_running_style(code: str) -> str:
    return _STYLE_ALIASES.get((code or "").strip().upper(), "U")


def classify_pp_style(pp: PastPerformance) -> str:
    """Running style shown in a single past race, from its call positions."""
    line = pp.running_line
    first = line.first_call if line.first_call is not None else line.start
    if first is None:
        return "U"
    behind = line.first_call_lengths or 0.0
    field_size = pp.field_size or 10
    if first == 1:
        return "E"
    if first <= 3 and behind <= 2.0:
        return "E/P"
    if first <= max(4, field_size // 2):
        return "P"
    # Back half early: closer if it made up ground late, otherwise sustained
    if line.stretch is not None and pp.finish_position < FINISH_SENTINEL:
        if first - pp.finish_position >= 3:
            return "C"
    return "S"


def infer_running_style(pps: Iterable[PastPerformance], declared: str = "", recent: int = 5) -> str:
    """Declared style when usable, else the most common style across recent PPs."""
    style = normalize_running_style(declared)
    if style != "U":
        return style
    styles = [classify_pp_style(pp) for pp in list(pps)[:recent]]
    styles = [s for s in styles if s != "U"]
    if not styles:
        return "U"
    counts = Counter(styles)
    top = max(counts.values())
    # Ties resolve toward the earlier style in the running order
    for candidate in ("E", "E/P", "P", "S", "C"):
        if counts.get(candidate) == top:
            return candidate
    return "U"


def running_style_name(code: Optional[str]) -> str:
    return RUNNING_STYLE_NAMES.get(normalize_running_style(code or ""), "Unknown")
