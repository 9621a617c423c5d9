# debug_calibration.py
import math

from command_parser import CommandParser
from constants import SAFE_ENVELOPE, SAMPLING
from core_physics import RCCircuit, Titration, AccretionDisk, key_metrics
from executor import ActionExecutor
from models import Domain, LabState, RCState, TitrationState, BlackHoleState
from safety import SafetyEnvelope


def run_debug():
    print("\n========================================")
    print("   VLAB CALIBRATION DEBUGGER")
    print("========================================")

    # 1. RC: charging curve against the closed form
    print("\n--- PHASE 1: RC CHARGING ---")
    rc = RCState()
    tau = RCCircuit.tau(rc)
    vc_tau = RCCircuit.capacitor_voltage(tau, rc)
    expected = rc.voltage_v * (1 - math.exp(-1))
    print(f" > tau:                  {tau:.4f} s (Should be 0.1 for 1 kΩ · 100 µF)")
    print(f" > Vc(tau):              {vc_tau:.4f} V (Expected {expected:.4f} V)")
    print(f" > I(0):                 {RCCircuit.current(0.0, rc) * 1000:.2f} mA")

    # 2. RC: current ceiling
    print("\n--- PHASE 2: CURRENT CEILING ---")
    hot = SafetyEnvelope.clamp_rc(RCState(voltage_v=12.0, resistance_ohm=10.0, capacitance_f=1e-6))
    peak = hot.voltage_v / hot.resistance_ohm
    print(f" > Requested:            12 V across 10 Ω (1.2 A)")
    print(f" > Clamped R:            {hot.resistance_ohm:.1f} Ω")
    print(f" > Peak current:         {peak:.4f} A (Limit {SAFE_ENVELOPE.RC_MAX_INITIAL_CURRENT_A} A)")
    if peak > SAFE_ENVELOPE.RC_MAX_INITIAL_CURRENT_A + 1e-12:
        print("   [FAIL] Ceiling not enforced!")

    # 3. Titration: equivalence and shape
    print("\n--- PHASE 3: TITRATION ---")
    for titr in (TitrationState(), TitrationState(acid_conc_m=0.5, acid_volume_ml=100.0, base_conc_m=0.05)):
        v_eq = Titration.equivalence_volume_ml(titr)
        series = Titration.sample(titr)
        ok = Titration.sanity_check(series.x_values, series.y_values, v_eq)
        print(f" > Ca={titr.acid_conc_m} M, Va={titr.acid_volume_ml} mL, Cb={titr.base_conc_m} M")
        print(f"   vEq={v_eq:.2f} mL | pH(vEq)={Titration.ph(v_eq, titr):.3f} | "
              f"sweep to {series.x_values[-1]:.1f} mL ({len(series.x_values)} pts) | sanity={'PASS' if ok else 'FAIL'}")
        if v_eq > SAMPLING.TITRATION_MAX_SWEEP_ML:
            print("   [NOTE] Equivalence lies beyond the burette sweep.")

    # 4. Black hole: ISCO proxy across the spin range
    print("\n--- PHASE 4: ACCRETION DISK ---")
    for spin in (0.0, 0.5, 0.99):
        bh = BlackHoleState(spin=spin)
        r_isco = AccretionDisk.isco_radius(bh)
        print(f" > spin {spin:<4} -> ISCO {r_isco:.2f} r_g, I(ISCO) = {AccretionDisk.intensity(r_isco, bh):.4f}")

    # 5. End to end through the parser
    print("\n--- PHASE 5: COMMAND ROUND TRIP ---")
    state = LabState()
    for command in (
        "Set V = 5 V, R = 1 kΩ, C = 100 µF and plot capacitor voltage for 1 s",
        "Double the resistance and measure at t = 0.1 s",
        "titrate 0.2 M acid with 0.1 M base and mark equivalence",
    ):
        parsed = CommandParser.parse(command, state.active)
        result = ActionExecutor.execute(parsed.actions, state)
        state = result.state
        print(f" > {command}")
        print(f"   actions:  {[a.kind for a in parsed.actions]}")
        for message in result.messages:
            print(f"   - {message}")
    print(f" > Final metrics ({state.active.value}): {key_metrics(state)}")
    print(f" > RC metrics kept:      {key_metrics(state, Domain.RC)}")


if __name__ == "__main__":
    run_debug()
