import math
from dataclasses import dataclass
from typing import Dict, Tuple

VERSION = "1.0.0"


@dataclass(frozen=True)
class Range:
    """Closed numeric interval of a safe envelope."""
    low: float
    high: float


class SAFE_ENVELOPE:
    # RC charging circuit
    RC_VOLTAGE_V = Range(0.0, 12.0)
    RC_RESISTANCE_OHM = Range(10.0, 1e6)
    RC_CAPACITANCE_F = Range(1e-9, 0.1)
    RC_MAX_INITIAL_CURRENT_A = 0.1  # Enforced by raising R, never by lowering V

    # Ohm's law sweep
    OHM_RESISTANCE_OHM = Range(1.0, 1e6)
    OHM_V_MAX_V = Range(0.1, 50.0)

    # Strong acid / strong base titration
    TITRATION_CONC_M = Range(0.001, 1.0)
    TITRATION_ACID_VOLUME_ML = Range(5.0, 200.0)

    # Black hole accretion disk
    BH_MASS_MSUN = Range(0.1, 10.0)
    BH_SPIN = Range(0.0, 0.99)
    BH_ACCRETION_RATE = Range(0.1, 5.0)


class DEFAULTS:
    """Starter values restored by 'reset'."""
    RC = {"voltage_v": 5.0, "resistance_ohm": 1000.0, "capacitance_f": 100e-6}
    OHM = {"resistance_ohm": 1000.0, "v_max_v": 10.0}
    TITRATION = {"acid_conc_m": 0.1, "acid_volume_ml": 50.0, "base_conc_m": 0.1, "mark_equivalence": True}
    BLACK_HOLE = {"mass_msun": 5.0, "spin": 0.7, "accretion_rate": 1.0}
    GEOMETRY_SHAPE = "tetrahedral"
    ACTIVE_DOMAIN = "rc"


class SAMPLING:
    RC_SAMPLES = 600
    OHM_SAMPLES = 300
    BH_SAMPLES = 200
    BH_R_MAX = 30.0

    # Plot window (seconds)
    RC_DEFAULT_DURATION_S = 1.0
    RC_MIN_DURATION_S = 0.01
    RC_MAX_DURATION_S = 60.0

    # Titration burette sweep (mL)
    TITRATION_MIN_SWEEP_ML = 20.0
    TITRATION_MAX_SWEEP_ML = 200.0
    TITRATION_SWEEP_FACTOR = 1.6      # Sweep past equivalence
    TITRATION_MIN_STEP_ML = 0.25
    TITRATION_STEPS = 200
    EQUIVALENCE_TOLERANCE_MOL = 1e-12
    SANITY_MONOTONIC_TOLERANCE = 1e-6
    SANITY_MIN_SLOPE_PH_PER_ML = 0.2


class UNIT_PREFIXES:
    """
    Metric prefixes accepted per unit family (case-sensitive).
    Ohms never read 'm' as milli (collides with 'M' = mega);
    farads never read 'M' (farad magnitudes are small).
    """
    EXPONENTS = {"n": -9, "u": -6, "µ": -6, "m": -3, "k": 3, "M": 6}  # Powers of ten

    VOLTS = ""
    OHMS = "nuµkM"
    FARADS = "nuµm"
    MOLAR = "muµ"
    MILLILITERS = ""


# Common misspellings: (typo, correction)
TYPO_HINTS: Dict[str, str] = {
    "curent": "current",
    "volatge": "voltage",
    "resistence": "resistance",
    "capitance": "capacitance",
    "milisecond": "millisecond",
}

HISTORY_LIMIT = 8


@dataclass(frozen=True)
class VSEPRShape:
    id: str
    title: str
    electron_pairs: int
    lone_pairs: int
    hybridization: str
    bond_angle: float
    positions: Tuple[Tuple[str, Tuple[float, float, float]], ...]
    description: str


_R = 2.0  # Ligand distance from the central atom (scene units)


def _planar(angle: float, radius: float = _R) -> Tuple[float, float, float]:
    return (math.cos(angle) * radius, math.sin(angle) * radius, 0.0)


class VSEPR_LIBRARY:
    """
    The Geometry Catalogue.
    Ideal shapes with zero lone pairs, keyed by shape id.
    """
    SHAPES = {
        "linear": VSEPRShape(
            id="linear", title="Linear (AX₂)",
            electron_pairs=2, lone_pairs=0, hybridization="sp", bond_angle=180.0,
            positions=(("A1", (-_R, 0.0, 0.0)), ("A2", (_R, 0.0, 0.0))),
            description="Two electron groups. Example: CO₂."
        ),
        "trigonal_planar": VSEPRShape(
            id="trigonal_planar", title="Trigonal planar (AX₃)",
            electron_pairs=3, lone_pairs=0, hybridization="sp²", bond_angle=120.0,
            positions=(
                ("A1", _planar(0.0)),
                ("A2", _planar(2 * math.pi / 3)),
                ("A3", _planar(4 * math.pi / 3)),
            ),
            description="Three electron groups in one plane. Example: BF₃."
        ),
        "tetrahedral": VSEPRShape(
            id="tetrahedral", title="Tetrahedral (AX₄)",
            electron_pairs=4, lone_pairs=0, hybridization="sp³", bond_angle=109.5,
            positions=(
                ("A1", (_R, 0.0, 0.0)),
                ("A2", (-_R / 3, _R * 0.94, 0.0)),
                ("A3", (-_R / 3, -_R * 0.47, _R * 0.82)),
                ("A4", (-_R / 3, -_R * 0.47, -_R * 0.82)),
            ),
            description="Four bonding pairs. Example: CH₄."
        ),
        "trigonal_bipyramidal": VSEPRShape(
            id="trigonal_bipyramidal", title="Trigonal bipyramidal (AX₅)",
            electron_pairs=5, lone_pairs=0, hybridization="sp³d", bond_angle=120.0,
            positions=(
                ("A1", (0.0, 0.0, _R * 1.2)),   # Axial
                ("A2", (0.0, 0.0, -_R * 1.2)),
                ("A3", (_R, 0.0, 0.0)),         # Equatorial
                ("A4", _planar(2 * math.pi / 3)),
                ("A5", _planar(4 * math.pi / 3)),
            ),
            description="Five electron groups with axial and equatorial positions. Example: PCl₅."
        ),
        "octahedral": VSEPRShape(
            id="octahedral", title="Octahedral (AX₆)",
            electron_pairs=6, lone_pairs=0, hybridization="sp³d²", bond_angle=90.0,
            positions=(
                ("A1", (_R, 0.0, 0.0)), ("A2", (-_R, 0.0, 0.0)),
                ("A3", (0.0, _R, 0.0)), ("A4", (0.0, -_R, 0.0)),
                ("A5", (0.0, 0.0, _R)), ("A6", (0.0, 0.0, -_R)),
            ),
            description="Six bonding pairs around the central atom. Example: SF₆."
        ),
    }

    FALLBACK_ID = "linear"

    @staticmethod
    def get(shape_id: str) -> VSEPRShape:
        return VSEPR_LIBRARY.SHAPES.get(shape_id, VSEPR_LIBRARY.SHAPES[VSEPR_LIBRARY.FALLBACK_ID])


EXAMPLE_COMMANDS = {
    "rc": "Set V = 5 V, R = 1 kΩ, C = 100 µF and plot capacitor voltage for 1 s",
    "titr": "Run a strong-acid titration and mark the equivalence point",
    "ohm": "Set resistance to 1 kΩ and max voltage to 10 V, then plot the I-V curve",
    "vsepr": "Explain tetrahedral hybridization and show the bond angles",
    "bh": "Simulate a black hole with mass 5 solar masses, spin 0.7, plot the accretion disk profile",
}

DOMAIN_LABELS = {
    "rc": "RC Charging",
    "ohm": "Ohm's Law",
    "titr": "Strong-acid titration",
    "bh": "Black hole accretion",
    "vsepr": "Atomic geometry",
}
