# safety.py
import math

from constants import SAFE_ENVELOPE, VSEPR_LIBRARY, Range
from models import (
    Domain, RCState, OhmState, TitrationState, BlackHoleState, GeometryState
)


def saturate(value: float, limits: Range) -> float:
    """Pulls a value into [low, high]. NaN lands on the lower bound."""
    if math.isnan(value):
        return limits.low
    return max(limits.low, min(value, limits.high))


class SafetyEnvelope:
    """
    Per-domain clamps applied to every state write.
    Never raises and never reports; each returns a new state.
    """
    @staticmethod
    def clamp_rc(state: RCState) -> RCState:
        voltage = saturate(state.voltage_v, SAFE_ENVELOPE.RC_VOLTAGE_V)
        resistance = saturate(state.resistance_ohm, SAFE_ENVELOPE.RC_RESISTANCE_OHM)
        capacitance = saturate(state.capacitance_f, SAFE_ENVELOPE.RC_CAPACITANCE_F)

        # Peak current ceiling: raise R, never lower V
        i_max = SAFE_ENVELOPE.RC_MAX_INITIAL_CURRENT_A
        if voltage / resistance > i_max:
            resistance = max(resistance, voltage / i_max)

        return RCState(voltage_v=voltage, resistance_ohm=resistance, capacitance_f=capacitance)

    @staticmethod
    def clamp_ohm(state: OhmState) -> OhmState:
        return OhmState(
            resistance_ohm=saturate(state.resistance_ohm, SAFE_ENVELOPE.OHM_RESISTANCE_OHM),
            v_max_v=saturate(state.v_max_v, SAFE_ENVELOPE.OHM_V_MAX_V)
        )

    @staticmethod
    def clamp_titration(state: TitrationState) -> TitrationState:
        return TitrationState(
            acid_conc_m=saturate(state.acid_conc_m, SAFE_ENVELOPE.TITRATION_CONC_M),
            acid_volume_ml=saturate(state.acid_volume_ml, SAFE_ENVELOPE.TITRATION_ACID_VOLUME_ML),
            base_conc_m=saturate(state.base_conc_m, SAFE_ENVELOPE.TITRATION_CONC_M),
            mark_equivalence=bool(state.mark_equivalence)
        )

    @staticmethod
    def clamp_black_hole(state: BlackHoleState) -> BlackHoleState:
        return BlackHoleState(
            mass_msun=saturate(state.mass_msun, SAFE_ENVELOPE.BH_MASS_MSUN),
            spin=saturate(state.spin, SAFE_ENVELOPE.BH_SPIN),
            accretion_rate=saturate(state.accretion_rate, SAFE_ENVELOPE.BH_ACCRETION_RATE)
        )

    @staticmethod
    def clamp_geometry(state: GeometryState) -> GeometryState:
        if state.shape_id in VSEPR_LIBRARY.SHAPES:
            return GeometryState(shape_id=state.shape_id)
        return GeometryState(shape_id=VSEPR_LIBRARY.FALLBACK_ID)

    @staticmethod
    def clamp(domain: Domain, state):
        return _CLAMPS[domain](state)


_CLAMPS = {
    Domain.RC: SafetyEnvelope.clamp_rc,
    Domain.OHM: SafetyEnvelope.clamp_ohm,
    Domain.TITRATION: SafetyEnvelope.clamp_titration,
    Domain.BLACK_HOLE: SafetyEnvelope.clamp_black_hole,
    Domain.GEOMETRY: SafetyEnvelope.clamp_geometry,
}
