"""
VLab: Unit Parser
=================
Pulls "<number> [prefix]<unit>" out of a text fragment and scales it to base
units (V, Ω, F, mol/L, mL). Prefix handling differs per family:
ohms never read lowercase 'm' (it collides with 'M' = mega), farads never
read uppercase 'M'.
"""

import math
import re
from typing import Optional

from constants import UNIT_PREFIXES
from models import UnitFamily

NUMBER = r"[-+]?\d*\.?\d+(?:[eE][-+]?\d+)?"

_BARE_NUMBER_RE = re.compile(NUMBER)

# Unit symbols are matched after the textual spellings have been normalized
_UNIT_PATTERNS = {
    UnitFamily.VOLTS: (UNIT_PREFIXES.VOLTS, r"[Vv]\b"),
    UnitFamily.OHMS: (UNIT_PREFIXES.OHMS, r"Ω"),
    UnitFamily.FARADS: (UNIT_PREFIXES.FARADS, r"[Ff]\b"),
    UnitFamily.MOLAR: (UNIT_PREFIXES.MOLAR, r"M\b"),
    UnitFamily.MILLILITERS: (UNIT_PREFIXES.MILLILITERS, r"m[Ll]\b"),
}


def _compile(prefixes: str, unit: str):
    if prefixes:
        return re.compile(rf"({NUMBER})\s*([{prefixes}])?\s*{unit}")
    return re.compile(rf"({NUMBER})()\s*{unit}")


_UNIT_RES = {family: _compile(*parts) for family, parts in _UNIT_PATTERNS.items()}


def _normalize(text: str, family: UnitFamily) -> str:
    text = text.replace("μ", "µ")  # Greek mu -> micro sign
    if family == UnitFamily.VOLTS:
        text = re.sub(r"\bvolts?\b", "V", text, flags=re.IGNORECASE)
    elif family == UnitFamily.OHMS:
        text = re.sub(r"\s*ohms?\b", "Ω", text, flags=re.IGNORECASE)
    elif family == UnitFamily.FARADS:
        text = re.sub(r"micro\s*", "µ", text, flags=re.IGNORECASE)
        text = re.sub(r"farads?\b", "F", text, flags=re.IGNORECASE)
    elif family == UnitFamily.MOLAR:
        text = re.sub(r"\s*mol\s*/\s*l\b", "M", text, flags=re.IGNORECASE)
    elif family == UnitFamily.MILLILITERS:
        text = re.sub(r"millilit(?:er|re)s?\b", "mL", text, flags=re.IGNORECASE)
    return text


def parse_quantity(text: str, family: UnitFamily) -> Optional[float]:
    """
    Returns the first "<number>[prefix]<unit>" in `text`, scaled to base units,
    or None when the family's pattern is absent.
    """
    if not text:
        return None
    match = _UNIT_RES[family].search(_normalize(text, family))
    if not match:
        return None
    value = float(match.group(1))
    if not math.isfinite(value):
        return None
    prefix = match.group(2) or ""
    exponent = UNIT_PREFIXES.EXPONENTS.get(prefix, 0)
    # Divide for sub-unit prefixes so "100 µF" lands exactly on 1e-4
    if exponent < 0:
        return value / 10 ** -exponent
    return value * 10 ** exponent


def parse_volts(text: str) -> Optional[float]:
    return parse_quantity(text, UnitFamily.VOLTS)


def parse_ohms(text: str) -> Optional[float]:
    return parse_quantity(text, UnitFamily.OHMS)


def parse_farads(text: str) -> Optional[float]:
    return parse_quantity(text, UnitFamily.FARADS)


def parse_molar(text: str) -> Optional[float]:
    return parse_quantity(text, UnitFamily.MOLAR)


def parse_milliliters(text: str) -> Optional[float]:
    return parse_quantity(text, UnitFamily.MILLILITERS)


def parse_bare_float(text: str) -> Optional[float]:
    """First numeric literal of the fragment, ignoring any unit."""
    if not text:
        return None
    match = _BARE_NUMBER_RE.search(text)
    if not match:
        return None
    value = float(match.group(0))
    return value if math.isfinite(value) else None


def parse_with_fallback(text: str, family: UnitFamily) -> Optional[float]:
    """
    Unit-aware parse first, then a bare number. None means the caller must
    leave the field at its previous value.
    """
    value = parse_quantity(text, family)
    if value is not None:
        return value
    return parse_bare_float(text)


# --- Display helpers ---

def format_ohms(value: float) -> str:
    if value >= 1e6:
        return f"{value / 1e6:.3f} MΩ"
    if value >= 1e3:
        return f"{value / 1e3:.3f} kΩ"
    return f"{value:.0f} Ω"


def format_farads(value: float) -> str:
    if value >= 1e-3:
        return f"{value * 1e3:.2f} mF"
    if value >= 1e-6:
        return f"{value * 1e6:.1f} µF"
    if value >= 1e-9:
        return f"{value * 1e9:.1f} nF"
    return f"{value:.2e} F"
