import itertools
import math
import unittest

from constants import SAFE_ENVELOPE, Range
from models import (
    Domain, RCState, OhmState, TitrationState, BlackHoleState, GeometryState
)
from safety import SafetyEnvelope, saturate

NAN = float("nan")
INF = float("inf")


class TestSafetyEnvelope(unittest.TestCase):
    """
    Clamps are the only gate between parsed numbers and the simulators.
    """

    def test_01_saturate(self):
        limits = Range(1.0, 5.0)
        self.assertEqual(saturate(0.0, limits), 1.0)
        self.assertEqual(saturate(9.0, limits), 5.0)
        self.assertEqual(saturate(3.0, limits), 3.0)
        self.assertEqual(saturate(NAN, limits), 1.0)
        self.assertEqual(saturate(INF, limits), 5.0)
        self.assertEqual(saturate(-INF, limits), 1.0)

    def test_02_rc_current_ceiling(self):
        """12 V across 10 Ω would push 1.2 A: R must rise, V must stay."""
        print("\nTEST 2: RC peak current ceiling")
        clamped = SafetyEnvelope.clamp_rc(RCState(voltage_v=12.0, resistance_ohm=10.0, capacitance_f=1e-6))
        print(f"   R raised to {clamped.resistance_ohm:.2f} Ω")
        self.assertEqual(clamped.voltage_v, 12.0)
        self.assertAlmostEqual(clamped.resistance_ohm, 120.0)
        self.assertLessEqual(clamped.voltage_v / clamped.resistance_ohm, 0.1 + 1e-12)

    def test_03_rc_current_ceiling_grid(self):
        for v, r, c in itertools.product(
            [0.0, 0.5, 5.0, 12.0, 50.0, NAN],
            [0.0, 1.0, 10.0, 100.0, 1e7, NAN],
            [0.0, 1e-6, 1.0]
        ):
            with self.subTest(v=v, r=r, c=c):
                clamped = SafetyEnvelope.clamp_rc(RCState(voltage_v=v, resistance_ohm=r, capacitance_f=c))
                self.assertLessEqual(clamped.voltage_v / clamped.resistance_ohm,
                                     SAFE_ENVELOPE.RC_MAX_INITIAL_CURRENT_A + 1e-12)

    def test_04_range_limits(self):
        rc = SafetyEnvelope.clamp_rc(RCState(voltage_v=20.0, resistance_ohm=5e6, capacitance_f=1.0))
        self.assertEqual(rc, RCState(voltage_v=12.0, resistance_ohm=1e6, capacitance_f=0.1))

        ohm = SafetyEnvelope.clamp_ohm(OhmState(resistance_ohm=0.5, v_max_v=100.0))
        self.assertEqual(ohm, OhmState(resistance_ohm=1.0, v_max_v=50.0))

        titr = SafetyEnvelope.clamp_titration(
            TitrationState(acid_conc_m=5.0, acid_volume_ml=1.0, base_conc_m=0.0, mark_equivalence=False)
        )
        self.assertEqual(titr.acid_conc_m, 1.0)
        self.assertEqual(titr.acid_volume_ml, 5.0)
        self.assertEqual(titr.base_conc_m, 0.001)
        self.assertFalse(titr.mark_equivalence)

        bh = SafetyEnvelope.clamp_black_hole(BlackHoleState(mass_msun=0.0, spin=1.0, accretion_rate=9.0))
        self.assertEqual(bh, BlackHoleState(mass_msun=0.1, spin=0.99, accretion_rate=5.0))

    def test_05_geometry_fallback(self):
        self.assertEqual(SafetyEnvelope.clamp_geometry(GeometryState("octahedral")).shape_id, "octahedral")
        self.assertEqual(SafetyEnvelope.clamp_geometry(GeometryState("square_planar")).shape_id, "linear")

    def test_06_idempotence(self):
        """clamp(clamp(x)) == clamp(x) in every domain, in range or not."""
        values = [-INF, -1.0, 0.0, 1e-9, 0.5, 7.0, 1e3, 1e9, INF, NAN]
        cases = []
        for a, b, c in itertools.product(values, repeat=3):
            cases.append((Domain.RC, RCState(voltage_v=a, resistance_ohm=b, capacitance_f=c)))
            cases.append((Domain.TITRATION, TitrationState(acid_conc_m=a, acid_volume_ml=b, base_conc_m=c)))
            cases.append((Domain.BLACK_HOLE, BlackHoleState(mass_msun=a, spin=b, accretion_rate=c)))
        for a, b in itertools.product(values, repeat=2):
            cases.append((Domain.OHM, OhmState(resistance_ohm=a, v_max_v=b)))
        for shape_id in ["linear", "tetrahedral", "bent", ""]:
            cases.append((Domain.GEOMETRY, GeometryState(shape_id=shape_id)))

        for domain, state in cases:
            once = SafetyEnvelope.clamp(domain, state)
            twice = SafetyEnvelope.clamp(domain, once)
            self.assertEqual(once, twice, f"{domain.value}: {state}")

    def test_07_clamped_values_are_finite(self):
        state = SafetyEnvelope.clamp(Domain.RC, RCState(voltage_v=NAN, resistance_ohm=NAN, capacitance_f=INF))
        self.assertTrue(all(math.isfinite(v) for v in (state.voltage_v, state.resistance_ohm, state.capacitance_f)))

    def test_08_never_mutates_input(self):
        requested = RCState(voltage_v=50.0, resistance_ohm=1.0, capacitance_f=1.0)
        SafetyEnvelope.clamp(Domain.RC, requested)
        self.assertEqual(requested.voltage_v, 50.0)
        self.assertEqual(requested.resistance_ohm, 1.0)


if __name__ == '__main__':
    unittest.main()
