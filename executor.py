# executor.py
import logging
from dataclasses import fields, replace
from typing import Iterable, List

from constants import DEFAULTS, DOMAIN_LABELS, SAMPLING
from core_physics import RCCircuit, OhmSweep, Titration, AccretionDisk, MolecularGeometry
from models import (
    Domain,
    LabState,
    ExecutionResult,
    ParsedAction,
    SwitchDomain, Reset,
    RCSet, RCScale, RCPlot, RCMeasure,
    TitrationSet, TitrationScale, TitrationRun, TitrationMark,
    OhmSet, OhmScale, OhmPlot,
    GeometrySelect, GeometryDescribe,
    BlackHoleSet, BlackHoleScale, BlackHolePlot,
    RCState, OhmState, TitrationState, BlackHoleState, GeometryState
)
from safety import SafetyEnvelope
from units import format_ohms

logger = logging.getLogger("vlab-executor")


def default_state(domain: Domain):
    """Starter values for one domain."""
    if domain == Domain.RC:
        return RCState(**DEFAULTS.RC)
    if domain == Domain.OHM:
        return OhmState(**DEFAULTS.OHM)
    if domain == Domain.TITRATION:
        return TitrationState(**DEFAULTS.TITRATION)
    if domain == Domain.BLACK_HOLE:
        return BlackHoleState(**DEFAULTS.BLACK_HOLE)
    return GeometryState(shape_id=DEFAULTS.GEOMETRY_SHAPE)


class _Batch:
    """Mutable scratch for one execute() call."""

    def __init__(self, state: LabState):
        self.state = state
        self.series = None
        self.series_discarded = False
        self.messages: List[str] = []
        self.measurements: List[dict] = []

    def write(self, domain: Domain, requested) -> bool:
        """Clamps and stores a domain state. True when the stored value changed."""
        clamped = SafetyEnvelope.clamp(domain, requested)
        if clamped != requested:
            logger.debug("Clamped %s: requested %s -> %s", domain.value, requested, clamped)
        before = self.state.get(domain)
        self.state = replace(self.state, **{LabState.attr_for(domain): clamped})
        return clamped != before


class ActionExecutor:
    """
    Applies actions strictly in order. Each action sees the state left by the
    previous one; every write passes through the SafetyEnvelope.
    """

    # --- Generic set / scale ---

    @staticmethod
    def _set(batch: _Batch, action) -> bool:
        domain = action.domain
        updates = {f.name: getattr(action, f.name) for f in fields(action) if getattr(action, f.name) is not None}
        changed = batch.write(domain, replace(batch.state.get(domain), **updates))
        if changed:
            batch.messages.append(f"Updated {DOMAIN_LABELS[domain.value]} values.")
        return changed

    @staticmethod
    def _scale(batch: _Batch, action) -> bool:
        domain = action.domain
        current = batch.state.get(domain)
        updates = {}
        for mul_name, field_name in action.targets.items():
            factor = getattr(action, mul_name)
            if factor != 1.0:
                updates[field_name] = getattr(current, field_name) * factor
        return batch.write(domain, replace(current, **updates))

    # --- Domain-agnostic ---

    @staticmethod
    def _switch(batch: _Batch, action: SwitchDomain) -> bool:
        changed = batch.state.active != action.to
        batch.state = replace(batch.state, active=action.to)
        batch.series = None
        batch.series_discarded = True
        batch.messages.append(f"Switched to {DOMAIN_LABELS[action.to.value]}.")
        logger.info("switched %s", action.to.value)
        return changed

    @staticmethod
    def _reset(batch: _Batch, action: Reset) -> bool:
        domain = batch.state.active
        changed = batch.write(domain, default_state(domain))
        batch.series = None
        batch.series_discarded = True
        batch.messages.append("Experiment reset to starter values.")
        logger.info("reset %s", domain.value)
        return changed

    # --- RC ---

    @staticmethod
    def _rc_plot(batch: _Batch, action: RCPlot) -> bool:
        rc = batch.state.rc
        assumed = action.duration_s is None
        requested = SAMPLING.RC_DEFAULT_DURATION_S if assumed else action.duration_s
        duration = max(SAMPLING.RC_MIN_DURATION_S, min(SAMPLING.RC_MAX_DURATION_S, requested))

        batch.series = RCCircuit.sample(rc, action.target, duration)
        tau = RCCircuit.tau(rc)
        batch.messages.append(f"Plotted {action.target.value} for {duration:.2f} s (τ={tau:.4f} s).")
        if assumed:
            batch.messages.append("Assuming plot duration = 1 s (default).")
        logger.info("plot rc_%s duration=%.2f tau=%.4f", action.target.value, duration, tau)
        return False

    @staticmethod
    def _rc_measure(batch: _Batch, action: RCMeasure) -> bool:
        rc = batch.state.rc
        vc = RCCircuit.capacitor_voltage(action.t_s, rc)
        current = RCCircuit.current(action.t_s, rc)
        batch.measurements.append({"t_s": action.t_s, "vc_v": vc, "current_a": current})
        batch.messages.append(f"Measurement at t={action.t_s:.3f} s → V_C={vc:.4f} V, I={current:.3e} A")
        logger.info("measure rc t=%.3f vc=%.4f i=%.3e", action.t_s, vc, current)
        return False

    # --- Titration ---

    @staticmethod
    def _titration_run(batch: _Batch, action: TitrationRun) -> bool:
        titr = batch.state.titration
        series = Titration.sample(titr)
        batch.series = series
        v_eq = Titration.equivalence_volume_ml(titr)
        if titr.mark_equivalence:
            batch.messages.append(f"Equivalence at ≈ {v_eq:.2f} mL, pH ≈ 7")
        if Titration.sanity_check(series.x_values, series.y_values, v_eq):
            batch.messages.append("Curve passes analytic sanity checks (sigmoidal; jump near pH≈7).")
        else:
            batch.messages.append("Curve sanity check failed: parameters may be extreme.")
        logger.info("plot titration v_eq=%.3f", v_eq)
        return False

    @staticmethod
    def _titration_mark(batch: _Batch, action: TitrationMark) -> bool:
        return batch.write(Domain.TITRATION, replace(batch.state.titration, mark_equivalence=action.on))

    # --- Ohm's law ---

    @staticmethod
    def _ohm_plot(batch: _Batch, action: OhmPlot) -> bool:
        ohm = batch.state.ohm
        batch.series = OhmSweep.sample(ohm)
        batch.messages.append(f"Plotted I–V curve up to {ohm.v_max_v:.2f} V for R={format_ohms(ohm.resistance_ohm)}.")
        logger.info("plot ohm_iv r=%g v_max=%g", ohm.resistance_ohm, ohm.v_max_v)
        return False

    # --- VSEPR ---

    @staticmethod
    def _geometry_select(batch: _Batch, action: GeometrySelect) -> bool:
        changed = batch.write(Domain.GEOMETRY, GeometryState(shape_id=action.shape_id))
        batch.messages.append(f"Selected {MolecularGeometry.get_shape(action.shape_id).title}.")
        return changed

    @staticmethod
    def _geometry_describe(batch: _Batch, action: GeometryDescribe) -> bool:
        shape_id = batch.state.geometry.shape_id
        batch.series = MolecularGeometry.bond_angle_series(shape_id)
        batch.messages.append(MolecularGeometry.describe(shape_id))
        logger.info("describe vsepr shape=%s", shape_id)
        return False

    # --- Black hole ---

    @staticmethod
    def _black_hole_plot(batch: _Batch, action: BlackHolePlot) -> bool:
        bh = batch.state.black_hole
        batch.series = AccretionDisk.sample(bh)
        batch.messages.append(
            f"Accretion disk profile for {bh.mass_msun:.1f} M☉ black hole, spin {bh.spin:.2f}."
        )
        logger.info("plot blackhole mass=%g spin=%g", bh.mass_msun, bh.spin)
        return False

    # --- Entry point ---

    @staticmethod
    def execute(actions: Iterable[ParsedAction], state: LabState) -> ExecutionResult:
        """
        Returns the new state, the last series produced (None if none, or if a
        later switch/reset discarded it) and how many actions ran. The input
        state is never mutated.
        """
        batch = _Batch(state)
        applied = 0
        changed_kinds = []

        for action in actions or []:
            handler = _HANDLERS.get(type(action))
            if handler is None:
                logger.warning("Skipping unsupported action: %r", action)
                continue
            if handler(batch, action):
                changed_kinds.append(action.kind)
            applied += 1

        return ExecutionResult(
            state=batch.state,
            series=batch.series,
            series_discarded=batch.series is None and batch.series_discarded,
            applied_count=applied,
            changed_kinds=changed_kinds,
            messages=batch.messages,
            measurements=batch.measurements
        )


_HANDLERS = {
    SwitchDomain: ActionExecutor._switch,
    Reset: ActionExecutor._reset,
    RCSet: ActionExecutor._set,
    RCScale: ActionExecutor._scale,
    RCPlot: ActionExecutor._rc_plot,
    RCMeasure: ActionExecutor._rc_measure,
    TitrationSet: ActionExecutor._set,
    TitrationScale: ActionExecutor._scale,
    TitrationRun: ActionExecutor._titration_run,
    TitrationMark: ActionExecutor._titration_mark,
    OhmSet: ActionExecutor._set,
    OhmScale: ActionExecutor._scale,
    OhmPlot: ActionExecutor._ohm_plot,
    GeometrySelect: ActionExecutor._geometry_select,
    GeometryDescribe: ActionExecutor._geometry_describe,
    BlackHoleSet: ActionExecutor._set,
    BlackHoleScale: ActionExecutor._scale,
    BlackHolePlot: ActionExecutor._black_hole_plot,
}
