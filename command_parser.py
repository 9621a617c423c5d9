"""
VLab: Command Parser
====================
Turns one free-text operator command into an ordered list of typed actions,
plus a trace of what was understood and what looked wrong.

Fixed keyword/pattern rules only. The parser never raises: anything it
cannot read ends up in `issues`, and an empty action list comes back with a
repaired command suggestion when one exists.
"""

import logging
import re
from typing import Callable, Dict, Optional

from classifier import DomainClassifier
from constants import DOMAIN_LABELS, EXAMPLE_COMMANDS, TYPO_HINTS
from core_physics import MolecularGeometry
from models import (
    Domain,
    UnknownDomainError,
    UnitFamily,
    PlotTarget,
    ParseResult,
    CommandFeedback,
    SwitchDomain, Reset,
    RCSet, RCScale, RCPlot, RCMeasure,
    TitrationSet, TitrationScale, TitrationRun, TitrationMark,
    OhmSet, OhmScale, OhmPlot,
    GeometrySelect, GeometryDescribe,
    BlackHoleSet, BlackHoleScale, BlackHolePlot
)
from units import NUMBER, parse_quantity, parse_bare_float, format_ohms, format_farads

logger = logging.getLogger("vlab-parser")

# Optional glue between a quantity name and its value: "R = 1 kΩ", "resistance to 1 kΩ"
ASSIGN = r"\s*(?:=|:|\bto\b|\bis\b|\bof\b)?\s*"
VOLTS = rf"{NUMBER}\s*(?:v|volts?)\b"
OHMS = rf"{NUMBER}\s*(?:[a-zµμ]\s*)?(?:ohms?\b|Ω)"
FARADS = rf"{NUMBER}\s*(?:[a-zµμ]|micro)?\s*(?:f|farads?)\b"
MOLAR = rf"{NUMBER}\s*[muµμ]?\s*(?:(?-i:M)\b|mol\s*/\s*l\b)"
MILLILITERS = rf"{NUMBER}\s*ml\b"
SECONDS = r"(?:s|sec|secs|second|seconds)\b"

_RESET_RE = re.compile(r"\breset\b")
_GO_RE = re.compile(r"\b(?:start|run|go)\b")
_DURATION_RE = re.compile(rf"\bfor\s*({NUMBER})\s*{SECONDS}", re.I)
_SCALE_WORDS = {"double": 2.0, "half": 0.5, "halfe": 0.5, "halve": 0.5}

# --- RC ---
_RC_VOLTAGE_RE = re.compile(rf"(?:\bv\b|\bvoltage\b){ASSIGN}({VOLTS})", re.I)
_RC_RESISTANCE_RE = re.compile(rf"(?:\br\b|\bresistance\b){ASSIGN}({OHMS})", re.I)
_RC_CAPACITANCE_RE = re.compile(rf"(?:\bc\b|\bcapacitance\b){ASSIGN}({FARADS})", re.I)


def _unitless(name: str):
    """A quantity assigned a plain number with no unit after it: "R = 1000", "voltage to 5,"."""
    return re.compile(rf"({name}{ASSIGN}{NUMBER})\s*(?:$|[,;]|\band\b)", re.I)


_RC_VOLTAGE_UNITLESS_RE = _unitless(r"(?:\bv\b|\bvoltage\b)")
_RC_RESISTANCE_UNITLESS_RE = _unitless(r"(?:\br\b|\bresistance\b)")
_RC_CAPACITANCE_UNITLESS_RE = _unitless(r"(?:\bc\b|\bcapacitance\b)")
_RC_PLOT_CURRENT_RE = re.compile(r"\bplot\b.*\bcurrent\b")
_RC_PLOT_VOLTAGE_RE = re.compile(r"\bplot\b.*\b(?:voltage|vc)\b")
_RC_MEASURE_RE = re.compile(rf"\bmeasure\b.*?(?:\bt\s*=?\s*|\bat\s+)({NUMBER})\s*{SECONDS}", re.I)
_RC_SCALES = {"resistance": "resistance_mul", "capacitance": "capacitance_mul", "voltage": "voltage_mul"}

# --- Titration ---
_ACID_CONC_RES = [
    re.compile(rf"\bacid(?:\s+concentration)?{ASSIGN}({MOLAR})", re.I),
    re.compile(rf"({MOLAR})\s+(?:of\s+)?(?:hcl\s+|the\s+)?acid\b", re.I),
]
_ACID_VOLUME_RES = [
    re.compile(rf"\bacid(?:\s+\w+)?\s+volume{ASSIGN}({MILLILITERS})", re.I),
    re.compile(rf"({MILLILITERS})\s+of\s+(?:the\s+)?(?:\w+\s+)?acid\b", re.I),
]
_BASE_CONC_RES = [
    re.compile(rf"\bbase(?:\s+concentration)?{ASSIGN}({MOLAR})", re.I),
    re.compile(rf"({MOLAR})\s+(?:of\s+)?(?:naoh|base)\b", re.I),
]
_MARK_ON_RE = re.compile(r"\b(?:mark|show)\b(?:\s+the)?\s+equivalence")
_MARK_OFF_RE = re.compile(r"\b(?:unmark|hide)\b(?:\s+the)?\s+equivalence")
_TITR_RUN_RE = re.compile(r"\b(?:run|start)\b.*titration|\bplot\b.*\bph\b")
_TITR_SCALES = {
    "acid concentration": "acid_conc_mul",
    "acid volume": "acid_volume_mul",
    "base concentration": "base_conc_mul",
}

# --- Ohm's law ---
_OHM_RESISTANCE_RE = re.compile(rf"(?:\br\b|\bresistance\b){ASSIGN}({OHMS})", re.I)
_OHM_V_MAX_RES = [
    re.compile(rf"\bup\s+to\s*({VOLTS})", re.I),
    re.compile(rf"\b(?:max(?:imum)?\s+voltage|v\s*max){ASSIGN}({VOLTS})", re.I),
    re.compile(rf"\bsweep(?:\s+\w+)?\s+to\s*({VOLTS})", re.I),
]
_OHM_PLOT_RE = re.compile(r"\bplot\b.*(?:\bi\s?[-–]?\s?v\b|current.*voltage|\bohm)")
_OHM_SCALES = {
    "resistance": "resistance_mul",
    "maximum voltage": "v_max_mul",
    "max voltage": "v_max_mul",
    "voltage": "v_max_mul",
}

# --- VSEPR ---
_DESCRIBE_RE = re.compile(r"describe|explain|\bangle|\bshow")

# --- Black hole ---
_MASS_RES = [
    re.compile(rf"\bmass{ASSIGN}({NUMBER})", re.I),
    re.compile(rf"({NUMBER})\s*(?:solar\s+mass(?:es)?|m☉|msun)", re.I),
]
_SPIN_RE = re.compile(rf"\bspin(?:\s+up)?{ASSIGN}({NUMBER})", re.I)
_ACCRETION_RE = re.compile(rf"\baccretion(?:\s+rate)?{ASSIGN}({NUMBER})", re.I)
_BH_PLOT_RE = re.compile(r"\b(?:plot|render|simulate)\b")
_BH_SCALES = {"accretion rate": "accretion_mul", "accretion": "accretion_mul", "mass": "mass_mul", "spin": "spin_mul"}

# --- Command repair ---
_REPAIRS = [(re.compile(typo, re.I), fix) for typo, fix in TYPO_HINTS.items()] + [
    (re.compile(r"\bsec(?:ond)?s?\b", re.I), "s"),
    (re.compile(r"(?<![a-z])uf\b", re.I), "µF"),
    (re.compile(r"\s+"), " "),
]


def _first_match(patterns, text: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def _scale_regex(quantities: Dict[str, str]):
    names = "|".join(re.escape(q) for q in sorted(quantities, key=len, reverse=True))
    words = "|".join(_SCALE_WORDS)
    return re.compile(rf"\b({words})\b(?:\s+the)?\s+({names})\b")


_SCALE_RES = {
    Domain.RC: _scale_regex(_RC_SCALES),
    Domain.TITRATION: _scale_regex(_TITR_SCALES),
    Domain.OHM: _scale_regex(_OHM_SCALES),
    Domain.BLACK_HOLE: _scale_regex(_BH_SCALES),
}


class CommandParser:
    """
    parse(text, active_domain) -> ParseResult.
    Rule sets are dispatched on the inferred domain (or the active one).
    """

    @staticmethod
    def _read_value(fragment: str, family: UnitFamily, result: ParseResult) -> Optional[float]:
        """Unit-aware read, then bare number. None leaves the field untouched."""
        value = parse_quantity(fragment, family)
        if value is not None:
            return value
        value = parse_bare_float(fragment)
        if value is None:
            result.issues.append(f'could not read a number from "{fragment.strip()}"')
            return None
        result.issues.append(f'unrecognized unit in "{fragment.strip()}", using {value:g} as a bare number')
        return value

    @staticmethod
    def _flag_missing_unit(pattern, text: str, result: ParseResult):
        match = pattern.search(text)
        if match:
            result.issues.append(f'missing unit in "{match.group(1).strip()}"')

    @staticmethod
    def _scales(domain: Domain, lower: str, quantities: Dict[str, str], factory, result: ParseResult):
        for match in _SCALE_RES[domain].finditer(lower):
            word, quantity = match.group(1), match.group(2)
            factor = _SCALE_WORDS[word]
            result.actions.append(factory(**{quantities[quantity]: factor}))
            result.recognized.append(f"{'Double' if factor > 1 else 'Half'} {quantity}")

    # --- Rule sets ---

    @staticmethod
    def _parse_rc(normalized: str, lower: str, result: ParseResult):
        fields = {}
        fragment = _first_match([_RC_VOLTAGE_RE], normalized)
        if fragment:
            value = CommandParser._read_value(fragment, UnitFamily.VOLTS, result)
            if value is not None:
                fields["voltage_v"] = value
                result.recognized.append(f"V = {value:g} V")
        else:
            CommandParser._flag_missing_unit(_RC_VOLTAGE_UNITLESS_RE, normalized, result)
        fragment = _first_match([_RC_RESISTANCE_RE], normalized)
        if fragment:
            value = CommandParser._read_value(fragment, UnitFamily.OHMS, result)
            if value is not None:
                fields["resistance_ohm"] = value
                result.recognized.append(f"R = {format_ohms(value)}")
        else:
            CommandParser._flag_missing_unit(_RC_RESISTANCE_UNITLESS_RE, normalized, result)
        fragment = _first_match([_RC_CAPACITANCE_RE], normalized)
        if fragment:
            value = CommandParser._read_value(fragment, UnitFamily.FARADS, result)
            if value is not None:
                fields["capacitance_f"] = value
                result.recognized.append(f"C = {format_farads(value)}")
        else:
            CommandParser._flag_missing_unit(_RC_CAPACITANCE_UNITLESS_RE, normalized, result)
        if fields:
            result.actions.append(RCSet(**fields))

        CommandParser._scales(Domain.RC, lower, _RC_SCALES, RCScale, result)

        duration = _DURATION_RE.search(normalized)
        duration_s = float(duration.group(1)) if duration else None
        suffix = f" for {duration_s:g} s" if duration_s is not None else ""
        plotted = False
        if _RC_PLOT_CURRENT_RE.search(lower):
            result.actions.append(RCPlot(target=PlotTarget.CURRENT, duration_s=duration_s))
            result.recognized.append(f"Plot current{suffix}")
            plotted = True
        if _RC_PLOT_VOLTAGE_RE.search(lower):
            result.actions.append(RCPlot(target=PlotTarget.VOLTAGE, duration_s=duration_s))
            result.recognized.append(f"Plot voltage{suffix}")
            plotted = True

        measure = _RC_MEASURE_RE.search(normalized)
        if measure:
            t = float(measure.group(1))
            result.actions.append(RCMeasure(t_s=t))
            result.recognized.append(f"Measure at t = {t:g} s")

        if not plotted and _GO_RE.search(lower):
            result.actions.append(RCPlot(target=PlotTarget.VOLTAGE))
            result.recognized.append("Start: plot capacitor voltage")

    @staticmethod
    def _parse_titration(normalized: str, lower: str, result: ParseResult):
        fields = {}
        fragment = _first_match(_ACID_CONC_RES, normalized)
        if fragment:
            value = CommandParser._read_value(fragment, UnitFamily.MOLAR, result)
            if value is not None:
                fields["acid_conc_m"] = value
                result.recognized.append(f"Acid = {value:g} M")
        fragment = _first_match(_ACID_VOLUME_RES, normalized)
        if fragment:
            value = CommandParser._read_value(fragment, UnitFamily.MILLILITERS, result)
            if value is not None:
                fields["acid_volume_ml"] = value
                result.recognized.append(f"Acid volume = {value:g} mL")
        fragment = _first_match(_BASE_CONC_RES, normalized)
        if fragment:
            value = CommandParser._read_value(fragment, UnitFamily.MOLAR, result)
            if value is not None:
                fields["base_conc_m"] = value
                result.recognized.append(f"Base = {value:g} M")
        if fields:
            result.actions.append(TitrationSet(**fields))

        CommandParser._scales(Domain.TITRATION, lower, _TITR_SCALES, TitrationScale, result)

        if _MARK_OFF_RE.search(lower):
            result.actions.append(TitrationMark(on=False))
            result.recognized.append("Hide equivalence marker")
        elif _MARK_ON_RE.search(lower):
            result.actions.append(TitrationMark(on=True))
            result.recognized.append("Mark equivalence point")

        if _TITR_RUN_RE.search(lower):
            result.actions.append(TitrationRun())
            result.recognized.append("Run titration")
        elif _GO_RE.search(lower):
            result.actions.append(TitrationRun())
            result.recognized.append("Start: run titration")

    @staticmethod
    def _parse_ohm(normalized: str, lower: str, result: ParseResult):
        fields = {}
        fragment = _first_match([_OHM_RESISTANCE_RE], normalized)
        if fragment:
            value = CommandParser._read_value(fragment, UnitFamily.OHMS, result)
            if value is not None:
                fields["resistance_ohm"] = value
                result.recognized.append(f"R = {format_ohms(value)}")
        else:
            CommandParser._flag_missing_unit(_RC_RESISTANCE_UNITLESS_RE, normalized, result)
        fragment = _first_match(_OHM_V_MAX_RES, normalized)
        if fragment:
            value = CommandParser._read_value(fragment, UnitFamily.VOLTS, result)
            if value is not None:
                fields["v_max_v"] = value
                result.recognized.append(f"Vmax = {value:g} V")
        if fields:
            result.actions.append(OhmSet(**fields))

        CommandParser._scales(Domain.OHM, lower, _OHM_SCALES, OhmScale, result)

        if _OHM_PLOT_RE.search(lower):
            result.actions.append(OhmPlot())
            result.recognized.append("Plot I-V")
        elif _GO_RE.search(lower):
            result.actions.append(OhmPlot())
            result.recognized.append("Start: plot I-V")

    @staticmethod
    def _parse_geometry(normalized: str, lower: str, result: ParseResult):
        for shape in MolecularGeometry.list_shapes():
            stem = shape.title.split("(")[0].strip().lower()
            if shape.id.replace("_", " ") in lower or stem in lower:
                result.actions.append(GeometrySelect(shape_id=shape.id))
                result.recognized.append(f"Select geometry {shape.title}")
                break
        if _DESCRIBE_RE.search(lower):
            result.actions.append(GeometryDescribe())
            result.recognized.append("Describe geometry")

    @staticmethod
    def _parse_black_hole(normalized: str, lower: str, result: ParseResult):
        fields = {}
        for name, patterns, label in (
            ("mass_msun", _MASS_RES, "Mass = {:g} M☉"),
            ("spin", [_SPIN_RE], "Spin = {:g}"),
            ("accretion_rate", [_ACCRETION_RE], "Accretion rate = {:g}"),
        ):
            fragment = _first_match(patterns, normalized)
            if fragment is None:
                continue
            value = parse_bare_float(fragment)
            if value is None:
                result.issues.append(f'could not read a number from "{fragment}"')
                continue
            fields[name] = value
            result.recognized.append(label.format(value))
        if fields:
            result.actions.append(BlackHoleSet(**fields))

        CommandParser._scales(Domain.BLACK_HOLE, lower, _BH_SCALES, BlackHoleScale, result)

        if _BH_PLOT_RE.search(lower):
            result.actions.append(BlackHolePlot())
            result.recognized.append("Plot accretion disk")
        elif _GO_RE.search(lower):
            result.actions.append(BlackHolePlot())
            result.recognized.append("Start: plot accretion disk")

    # --- Entry points ---

    @staticmethod
    def parse(text: str, active_domain) -> ParseResult:
        result = ParseResult()
        text = text if isinstance(text, str) else ""
        try:
            active = Domain.parse(active_domain)
        except UnknownDomainError as e:
            result.issues.append(str(e))
            active = Domain.RC

        normalized = re.sub(r"[,;]+", " and ", text)
        lower = normalized.lower()

        if _RESET_RE.search(lower):
            result.actions.append(Reset())
            result.recognized.append("Reset experiment")

        inferred = DomainClassifier.classify(lower, active)
        result.inferred_domain = inferred.domain
        domain = inferred.domain or active
        if inferred.switch:
            result.actions.insert(0, SwitchDomain(to=domain))
            result.recognized.insert(0, f"Switch to {DOMAIN_LABELS[domain.value]}")

        _RULES[domain](normalized, lower, result)

        for typo, fix in TYPO_HINTS.items():
            if typo in lower:
                result.issues.append(f'possible typo in "{typo}" → "{fix}"')

        if not result.actions:
            result.suggestion = CommandParser.repair_command(text)

        logger.debug("Parsed %r in %s -> %s", text, domain.value, [a.kind for a in result.actions])
        return result

    @staticmethod
    def repair_command(text: str) -> Optional[str]:
        """
        Deterministic rewrite for a retry. Returns None when nothing changed.
        Never applied automatically.
        """
        text = text if isinstance(text, str) else ""
        repaired = text
        for pattern, replacement in _REPAIRS:
            repaired = pattern.sub(replacement, repaired)
        repaired = repaired.strip()
        return None if repaired == text.strip() else repaired

    @staticmethod
    def explain_failure(text: str, result: ParseResult) -> CommandFeedback:
        """Itemized feedback for a command that produced no executable action."""
        lines = []
        if result.recognized:
            lines.append("I think you said:")
            lines.extend(f"• {item}" for item in result.recognized)
            if result.issues:
                lines.append(f"I couldn't understand part of it ({result.issues[0]}).")
            else:
                lines.append("I couldn't understand the rest of that command.")
        else:
            lines.append("I couldn't turn that into a simulation step.")
            if result.issues:
                lines.append(f"Possible problem: {result.issues[0]}.")
            lines.append(f"Try a command like: {EXAMPLE_COMMANDS['rc']}.")

        suggestion = result.suggestion or CommandParser.repair_command(text)
        if suggestion:
            lines.append(f"Did you mean: {suggestion}")
        return CommandFeedback(ok=False, lines=lines, suggestion=suggestion)


_RULES: Dict[Domain, Callable] = {
    Domain.RC: CommandParser._parse_rc,
    Domain.TITRATION: CommandParser._parse_titration,
    Domain.OHM: CommandParser._parse_ohm,
    Domain.GEOMETRY: CommandParser._parse_geometry,
    Domain.BLACK_HOLE: CommandParser._parse_black_hole,
}
