"""
VLab: Core Physics Engine
=========================
Closed-form models for the five labs. Every function here is pure: it reads
an (already clamped) state and returns numbers or a SampledSeries.
"""

import math
from typing import List, Optional

from constants import SAMPLING, VSEPR_LIBRARY, VSEPRShape
from models import (
    Domain,
    LabState,
    PlotTarget,
    RCState,
    OhmState,
    TitrationState,
    BlackHoleState,
    SampledSeries
)
from units import format_ohms


def _linspace(start: float, stop: float, n: int) -> List[float]:
    """n+1 evenly spaced points over [start, stop]."""
    return [start + (stop - start) * i / n for i in range(n + 1)]


class RCCircuit:
    """Charging of a capacitor through a resistor from a DC source."""

    @staticmethod
    def tau(state: RCState) -> float:
        return state.resistance_ohm * state.capacitance_f

    @staticmethod
    def capacitor_voltage(t: float, state: RCState) -> float:
        return state.voltage_v * (1.0 - math.exp(-t / RCCircuit.tau(state)))

    @staticmethod
    def current(t: float, state: RCState) -> float:
        return (state.voltage_v / state.resistance_ohm) * math.exp(-t / RCCircuit.tau(state))

    @staticmethod
    def sample(state: RCState, target: PlotTarget, duration_s: float,
               n: int = SAMPLING.RC_SAMPLES) -> SampledSeries:
        times = _linspace(0.0, duration_s, n)
        if target == PlotTarget.CURRENT:
            values = [RCCircuit.current(t, state) for t in times]
            label = "Current I (A)"
        else:
            values = [RCCircuit.capacitor_voltage(t, state) for t in times]
            label = "V_C (V)"
        return SampledSeries(
            x_values=times, y_values=values, label=label,
            x_label="t (s)", markers={"τ": RCCircuit.tau(state)}
        )


class OhmSweep:
    """Linear I-V sweep of a fixed resistor from 0 to Vmax."""

    @staticmethod
    def sample(state: OhmState, n: int = SAMPLING.OHM_SAMPLES) -> SampledSeries:
        voltages = [state.v_max_v * i / n for i in range(n + 1)]
        currents = [v / state.resistance_ohm for v in voltages]
        return SampledSeries(x_values=voltages, y_values=currents, label="I vs V", x_label="Voltage (V)")


class Titration:
    """
    Strong acid titrated with strong base.
    No hydrolysis: the equivalence point sits at exactly pH 7.
    """

    @staticmethod
    def equivalence_volume_ml(state: TitrationState) -> float:
        return (state.acid_conc_m * (state.acid_volume_ml / 1000.0) / state.base_conc_m) * 1000.0

    @staticmethod
    def ph(v_base_ml: float, state: TitrationState) -> float:
        v_acid_l = state.acid_volume_ml / 1000.0
        n_acid = state.acid_conc_m * v_acid_l
        n_base = state.base_conc_m * (v_base_ml / 1000.0)
        v_total_l = v_acid_l + v_base_ml / 1000.0

        if abs(n_base - n_acid) < SAMPLING.EQUIVALENCE_TOLERANCE_MOL:
            return 7.0
        if n_base < n_acid:
            return -math.log10((n_acid - n_base) / v_total_l)
        p_oh = -math.log10((n_base - n_acid) / v_total_l)
        return 14.0 - p_oh

    @staticmethod
    def sample(state: TitrationState) -> SampledSeries:
        v_eq = Titration.equivalence_volume_ml(state)
        max_v = min(SAMPLING.TITRATION_MAX_SWEEP_ML,
                    max(SAMPLING.TITRATION_MIN_SWEEP_ML, v_eq * SAMPLING.TITRATION_SWEEP_FACTOR))
        step = max(SAMPLING.TITRATION_MIN_STEP_ML, max_v / SAMPLING.TITRATION_STEPS)

        # Index-based stepping so no float drift pushes the sweep past max_v
        volumes = [i * step for i in range(int(max_v / step + 1e-9) + 1)]
        markers = {"Eq": v_eq} if state.mark_equivalence else {}
        return SampledSeries(
            x_values=volumes, y_values=[Titration.ph(v, state) for v in volumes],
            label="pH", x_label="Volume of base added (mL)", markers=markers
        )

    @staticmethod
    def sanity_check(xs: List[float], ys: List[float], v_eq: float) -> bool:
        """
        Analytic shape check: never decreasing, and steep right at equivalence.
        Needs two samples on each side of v_eq to measure the jump.
        """
        for i in range(1, len(ys)):
            if ys[i] < ys[i - 1] - SAMPLING.SANITY_MONOTONIC_TOLERANCE:
                return False

        idx = next((i for i, v in enumerate(xs) if v > v_eq), -1)
        if idx < 2 or idx > len(ys) - 3:
            return False
        slope = (ys[idx + 1] - ys[idx - 1]) / (xs[idx + 1] - xs[idx - 1])
        return slope > SAMPLING.SANITY_MIN_SLOPE_PH_PER_ML


class AccretionDisk:
    """Toy disk brightness profile outside a simplified ISCO radius."""

    @staticmethod
    def isco_radius(state: BlackHoleState) -> float:
        # Gravitational radii: 3 for spin 0 down towards 1 for maximal spin
        return 1.0 + (1.0 - state.spin) * 2.0

    @staticmethod
    def intensity(r: float, state: BlackHoleState) -> float:
        return state.accretion_rate * r ** -2 * state.mass_msun ** -0.5

    @staticmethod
    def sample(state: BlackHoleState, n: int = SAMPLING.BH_SAMPLES) -> SampledSeries:
        r_min = AccretionDisk.isco_radius(state)
        radii = _linspace(r_min, SAMPLING.BH_R_MAX, n)
        return SampledSeries(
            x_values=radii, y_values=[AccretionDisk.intensity(r, state) for r in radii],
            label="Disk intensity", x_label="r (r_g units)", markers={"ISCO": r_min}
        )


class MolecularGeometry:
    """VSEPR lookup. No computation beyond the table."""

    @staticmethod
    def get_shape(shape_id: str) -> VSEPRShape:
        return VSEPR_LIBRARY.get(shape_id)

    @staticmethod
    def list_shapes() -> List[VSEPRShape]:
        return list(VSEPR_LIBRARY.SHAPES.values())

    @staticmethod
    def bond_angle_series(shape_id: str) -> SampledSeries:
        shape = MolecularGeometry.get_shape(shape_id)
        return SampledSeries(
            x_values=[0.0, 1.0], y_values=[shape.bond_angle, shape.bond_angle],
            label=f"Bond angle ≈ {shape.bond_angle:g}°", x_label="Parameter"
        )

    @staticmethod
    def describe(shape_id: str) -> str:
        shape = MolecularGeometry.get_shape(shape_id)
        return (f"{shape.title}: hybridization {shape.hybridization}, "
                f"ideal bond angle ≈ {shape.bond_angle:g}°, {shape.description}")


def key_metrics(state: LabState, domain: Optional[Domain] = None) -> dict:
    """Headline numbers for one domain (the active one by default)."""
    domain = domain or state.active

    if domain == Domain.RC:
        rc = state.rc
        return {
            "tau_s": round(RCCircuit.tau(rc), 6),
            "initial_current_a": rc.voltage_v / rc.resistance_ohm,
            "resistance": format_ohms(rc.resistance_ohm),
        }
    if domain == Domain.TITRATION:
        titr = state.titration
        v_eq = Titration.equivalence_volume_ml(titr)
        return {
            "equivalence_ml": round(v_eq, 4),
            "ph_start": round(Titration.ph(0.0, titr), 4),
            "ph_at_1_5_eq": round(Titration.ph(v_eq * 1.5, titr), 4),
        }
    if domain == Domain.OHM:
        ohm = state.ohm
        return {
            "resistance": format_ohms(ohm.resistance_ohm),
            "v_max_v": ohm.v_max_v,
            "i_max_a": ohm.v_max_v / ohm.resistance_ohm,
        }
    if domain == Domain.GEOMETRY:
        shape = MolecularGeometry.get_shape(state.geometry.shape_id)
        return {
            "geometry": shape.title,
            "bond_angle_deg": shape.bond_angle,
            "hybridization": shape.hybridization,
        }
    bh = state.black_hole
    return {
        "mass_msun": bh.mass_msun,
        "spin": bh.spin,
        "isco_rg": round(AccretionDisk.isco_radius(bh), 4),
    }
