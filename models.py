"""
VLab: Data Dictionary & Action Definitions
==========================================
This module defines the state space of the five lab simulators, the tagged
actions a command turns into, and the result objects handed back to callers.

NO LOGIC is implemented here beyond (de)serialization. Parsing lives in
command_parser.py, state transitions in executor.py.
"""

import math
from dataclasses import dataclass, field, fields, asdict
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional

from constants import DEFAULTS, VSEPR_LIBRARY


class UnknownDomainError(ValueError):
    """Raised when a caller names a lab domain that does not exist."""
    pass


class UnknownActionError(ValueError):
    """Raised when a caller-provided action dict cannot be turned into an action."""
    pass


# --- 1. ENUMS ---

class Domain(Enum):
    RC = "rc"
    OHM = "ohm"
    TITRATION = "titr"
    BLACK_HOLE = "bh"
    GEOMETRY = "vsepr"

    @staticmethod
    def parse(value) -> "Domain":
        if isinstance(value, Domain):
            return value
        try:
            return Domain(str(value).strip().lower())
        except ValueError:
            raise UnknownDomainError(f"Unknown lab domain: {value!r}")


class PlotTarget(Enum):
    VOLTAGE = "voltage"
    CURRENT = "current"


class UnitFamily(Enum):
    VOLTS = "volts"
    OHMS = "ohms"
    FARADS = "farads"
    MOLAR = "molar"
    MILLILITERS = "milliliters"


# --- 2. PHYSICAL STATE (one per domain) ---

@dataclass
class RCState:
    voltage_v: float = DEFAULTS.RC["voltage_v"]
    resistance_ohm: float = DEFAULTS.RC["resistance_ohm"]
    capacitance_f: float = DEFAULTS.RC["capacitance_f"]


@dataclass
class OhmState:
    resistance_ohm: float = DEFAULTS.OHM["resistance_ohm"]
    v_max_v: float = DEFAULTS.OHM["v_max_v"]


@dataclass
class TitrationState:
    acid_conc_m: float = DEFAULTS.TITRATION["acid_conc_m"]        # mol/L
    acid_volume_ml: float = DEFAULTS.TITRATION["acid_volume_ml"]
    base_conc_m: float = DEFAULTS.TITRATION["base_conc_m"]
    mark_equivalence: bool = DEFAULTS.TITRATION["mark_equivalence"]


@dataclass
class BlackHoleState:
    mass_msun: float = DEFAULTS.BLACK_HOLE["mass_msun"]
    spin: float = DEFAULTS.BLACK_HOLE["spin"]                      # Dimensionless, [0, 1)
    accretion_rate: float = DEFAULTS.BLACK_HOLE["accretion_rate"]  # Arbitrary units


@dataclass
class GeometryState:
    shape_id: str = DEFAULTS.GEOMETRY_SHAPE


_STATE_ATTR = {
    Domain.RC: "rc",
    Domain.OHM: "ohm",
    Domain.TITRATION: "titration",
    Domain.BLACK_HOLE: "black_hole",
    Domain.GEOMETRY: "geometry",
}


@dataclass
class LabState:
    """
    The per-domain state bundle. Exactly one domain is active; the others
    keep their values untouched until the operator switches back.
    """
    active: Domain = Domain(DEFAULTS.ACTIVE_DOMAIN)
    rc: RCState = field(default_factory=RCState)
    ohm: OhmState = field(default_factory=OhmState)
    titration: TitrationState = field(default_factory=TitrationState)
    black_hole: BlackHoleState = field(default_factory=BlackHoleState)
    geometry: GeometryState = field(default_factory=GeometryState)

    def get(self, domain: Domain):
        return getattr(self, _STATE_ATTR[domain])

    @staticmethod
    def attr_for(domain: Domain) -> str:
        return _STATE_ATTR[domain]

    def to_dict(self) -> dict:
        data = asdict(self)
        data["active"] = self.active.value
        return data


# --- 3. ACTIONS (one dataclass per operation) ---

@dataclass(frozen=True)
class ParsedAction:
    kind: ClassVar[str] = ""
    domain: ClassVar[Optional[Domain]] = None

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {"kind": self.kind}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            data[f.name] = value.value if isinstance(value, Enum) else value
        return data


@dataclass(frozen=True)
class SwitchDomain(ParsedAction):
    kind: ClassVar[str] = "switch"
    to: Domain = Domain.RC


@dataclass(frozen=True)
class Reset(ParsedAction):
    kind: ClassVar[str] = "reset"


@dataclass(frozen=True)
class RCSet(ParsedAction):
    kind: ClassVar[str] = "rc.set"
    domain: ClassVar[Optional[Domain]] = Domain.RC
    voltage_v: Optional[float] = None
    resistance_ohm: Optional[float] = None
    capacitance_f: Optional[float] = None


@dataclass(frozen=True)
class RCScale(ParsedAction):
    kind: ClassVar[str] = "rc.scale"
    domain: ClassVar[Optional[Domain]] = Domain.RC
    targets: ClassVar[Dict[str, str]] = {
        "voltage_mul": "voltage_v",
        "resistance_mul": "resistance_ohm",
        "capacitance_mul": "capacitance_f",
    }
    voltage_mul: float = 1.0
    resistance_mul: float = 1.0
    capacitance_mul: float = 1.0


@dataclass(frozen=True)
class RCPlot(ParsedAction):
    kind: ClassVar[str] = "rc.plot"
    domain: ClassVar[Optional[Domain]] = Domain.RC
    target: PlotTarget = PlotTarget.VOLTAGE
    duration_s: Optional[float] = None


@dataclass(frozen=True)
class RCMeasure(ParsedAction):
    kind: ClassVar[str] = "rc.measure"
    domain: ClassVar[Optional[Domain]] = Domain.RC
    t_s: float = 0.0


@dataclass(frozen=True)
class TitrationSet(ParsedAction):
    kind: ClassVar[str] = "titr.set"
    domain: ClassVar[Optional[Domain]] = Domain.TITRATION
    acid_conc_m: Optional[float] = None
    acid_volume_ml: Optional[float] = None
    base_conc_m: Optional[float] = None


@dataclass(frozen=True)
class TitrationScale(ParsedAction):
    kind: ClassVar[str] = "titr.scale"
    domain: ClassVar[Optional[Domain]] = Domain.TITRATION
    targets: ClassVar[Dict[str, str]] = {
        "acid_conc_mul": "acid_conc_m",
        "acid_volume_mul": "acid_volume_ml",
        "base_conc_mul": "base_conc_m",
    }
    acid_conc_mul: float = 1.0
    acid_volume_mul: float = 1.0
    base_conc_mul: float = 1.0


@dataclass(frozen=True)
class TitrationRun(ParsedAction):
    kind: ClassVar[str] = "titr.run"
    domain: ClassVar[Optional[Domain]] = Domain.TITRATION


@dataclass(frozen=True)
class TitrationMark(ParsedAction):
    kind: ClassVar[str] = "titr.mark"
    domain: ClassVar[Optional[Domain]] = Domain.TITRATION
    on: bool = True


@dataclass(frozen=True)
class OhmSet(ParsedAction):
    kind: ClassVar[str] = "ohm.set"
    domain: ClassVar[Optional[Domain]] = Domain.OHM
    resistance_ohm: Optional[float] = None
    v_max_v: Optional[float] = None


@dataclass(frozen=True)
class OhmScale(ParsedAction):
    kind: ClassVar[str] = "ohm.scale"
    domain: ClassVar[Optional[Domain]] = Domain.OHM
    targets: ClassVar[Dict[str, str]] = {
        "resistance_mul": "resistance_ohm",
        "v_max_mul": "v_max_v",
    }
    resistance_mul: float = 1.0
    v_max_mul: float = 1.0


@dataclass(frozen=True)
class OhmPlot(ParsedAction):
    kind: ClassVar[str] = "ohm.plot"
    domain: ClassVar[Optional[Domain]] = Domain.OHM


@dataclass(frozen=True)
class GeometrySelect(ParsedAction):
    kind: ClassVar[str] = "vsepr.select"
    domain: ClassVar[Optional[Domain]] = Domain.GEOMETRY
    shape_id: str = DEFAULTS.GEOMETRY_SHAPE

    def __post_init__(self):
        if self.shape_id not in VSEPR_LIBRARY.SHAPES:
            raise UnknownActionError(f"Unknown geometry: {self.shape_id!r}")


@dataclass(frozen=True)
class GeometryDescribe(ParsedAction):
    kind: ClassVar[str] = "vsepr.describe"
    domain: ClassVar[Optional[Domain]] = Domain.GEOMETRY


@dataclass(frozen=True)
class BlackHoleSet(ParsedAction):
    kind: ClassVar[str] = "bh.set"
    domain: ClassVar[Optional[Domain]] = Domain.BLACK_HOLE
    mass_msun: Optional[float] = None
    spin: Optional[float] = None
    accretion_rate: Optional[float] = None


@dataclass(frozen=True)
class BlackHoleScale(ParsedAction):
    kind: ClassVar[str] = "bh.scale"
    domain: ClassVar[Optional[Domain]] = Domain.BLACK_HOLE
    targets: ClassVar[Dict[str, str]] = {
        "mass_mul": "mass_msun",
        "spin_mul": "spin",
        "accretion_mul": "accretion_rate",
    }
    mass_mul: float = 1.0
    spin_mul: float = 1.0
    accretion_mul: float = 1.0


@dataclass(frozen=True)
class BlackHolePlot(ParsedAction):
    kind: ClassVar[str] = "bh.plot"
    domain: ClassVar[Optional[Domain]] = Domain.BLACK_HOLE


ACTION_TYPES = {
    cls.kind: cls for cls in (
        SwitchDomain, Reset,
        RCSet, RCScale, RCPlot, RCMeasure,
        TitrationSet, TitrationScale, TitrationRun, TitrationMark,
        OhmSet, OhmScale, OhmPlot,
        GeometrySelect, GeometryDescribe,
        BlackHoleSet, BlackHoleScale, BlackHolePlot,
    )
}


def _check_field(kind: str, name: str, expected, value):
    """Numbers must be finite and not bool; None only where the field is optional."""
    if expected in (float, Optional[float]):
        if value is None and expected == Optional[float]:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise UnknownActionError(f"'{kind}' field {name!r} must be a finite number, got {value!r}")
        return float(value)
    if expected in (bool, str) and not isinstance(value, expected):
        raise UnknownActionError(f"'{kind}' field {name!r} must be {expected.__name__}, got {value!r}")
    return value


def action_from_dict(data: dict) -> ParsedAction:
    """Builds a typed action from its {"kind": ..., field: value} form."""
    if not isinstance(data, dict):
        raise UnknownActionError(f"Action must be an object, got {type(data).__name__}")
    payload = dict(data)
    kind = payload.pop("kind", None)
    cls = ACTION_TYPES.get(kind)
    if cls is None:
        raise UnknownActionError(f"Unknown action kind: {kind!r}")

    declared = {f.name: f.type for f in fields(cls)}
    unknown = [name for name in payload if name not in declared]
    if unknown:
        raise UnknownActionError(f"Invalid fields for '{kind}': {', '.join(map(repr, unknown))}")

    if "to" in payload:
        payload["to"] = Domain.parse(payload["to"])
    if "target" in payload:
        try:
            payload["target"] = PlotTarget(payload["target"])
        except ValueError:
            raise UnknownActionError(f"Unknown plot target: {payload['target']!r}")

    for name, value in payload.items():
        payload[name] = _check_field(kind, name, declared[name], value)
    return cls(**payload)


# --- 4. RESULTS ---

@dataclass
class ParseResult:
    """What the parser understood. `actions` is execution order."""
    actions: List[ParsedAction] = field(default_factory=list)
    recognized: List[str] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    inferred_domain: Optional[Domain] = None
    suggestion: Optional[str] = None  # Repaired command, only when no actions were produced

    def to_dict(self) -> dict:
        return {
            "actions": [a.to_dict() for a in self.actions],
            "recognized": list(self.recognized),
            "issues": list(self.issues),
            "inferred_domain": self.inferred_domain.value if self.inferred_domain else None,
            "suggestion": self.suggestion,
        }


@dataclass
class SampledSeries:
    """Always derived from state, never stored in it."""
    x_values: List[float]
    y_values: List[float]
    label: str
    x_label: str = ""
    markers: Dict[str, float] = field(default_factory=dict)  # e.g. {"τ": 0.1}


@dataclass
class ExecutionResult:
    state: LabState
    series: Optional[SampledSeries] = None
    series_discarded: bool = False  # A switch/reset dropped the series and no later plot replaced it
    applied_count: int = 0
    changed_kinds: List[str] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)
    measurements: List[dict] = field(default_factory=list)


@dataclass
class CommandFeedback:
    """Itemized explanation shown to the operator when a command did nothing."""
    ok: bool
    lines: List[str] = field(default_factory=list)
    suggestion: Optional[str] = None
