import itertools
import math
import unittest

from core_physics import RCCircuit, OhmSweep, Titration, AccretionDisk, MolecularGeometry, key_metrics
from models import (
    Domain, LabState, PlotTarget, RCState, OhmState, TitrationState, BlackHoleState
)
from safety import SafetyEnvelope


class TestRCCircuit(unittest.TestCase):

    def test_01_voltage_at_tau(self):
        """Vc(τ) = V·(1 − 1/e) for any clamped circuit."""
        for v, r, c in itertools.product([0.0, 1.0, 5.0, 12.0], [10.0, 1e3, 1e6], [1e-9, 1e-4, 0.1]):
            rc = SafetyEnvelope.clamp_rc(RCState(voltage_v=v, resistance_ohm=r, capacitance_f=c))
            tau = RCCircuit.tau(rc)
            with self.subTest(v=v, r=r, c=c):
                self.assertAlmostEqual(RCCircuit.capacitor_voltage(tau, rc),
                                       rc.voltage_v * (1 - 1 / math.e), delta=1e-3)

    def test_02_default_circuit(self):
        rc = RCState()
        self.assertAlmostEqual(RCCircuit.tau(rc), 0.1)
        self.assertAlmostEqual(RCCircuit.capacitor_voltage(0.1, rc), 3.1606, places=4)
        self.assertAlmostEqual(RCCircuit.current(0.0, rc), 0.005)

    def test_03_sampling(self):
        series = RCCircuit.sample(RCState(), PlotTarget.VOLTAGE, 1.0, n=600)
        self.assertEqual(len(series.x_values), 601)
        self.assertEqual(series.x_values[0], 0.0)
        self.assertAlmostEqual(series.x_values[-1], 1.0)
        self.assertEqual(series.y_values[0], 0.0)
        self.assertAlmostEqual(series.markers["τ"], 0.1)

        current = RCCircuit.sample(RCState(), PlotTarget.CURRENT, 1.0, n=10)
        self.assertAlmostEqual(current.y_values[0], 0.005)
        self.assertTrue(all(a > b for a, b in zip(current.y_values, current.y_values[1:])))


class TestOhmSweep(unittest.TestCase):

    def test_01_linear_sweep(self):
        series = OhmSweep.sample(OhmState(resistance_ohm=500.0, v_max_v=10.0), n=100)
        self.assertEqual(len(series.x_values), 101)
        self.assertEqual(series.x_values[-1], 10.0)
        self.assertAlmostEqual(series.y_values[-1], 0.02)
        self.assertEqual(series.y_values[0], 0.0)


class TestTitration(unittest.TestCase):
    GRID = [
        TitrationState(acid_conc_m=a, acid_volume_ml=v, base_conc_m=b)
        for a, v, b in itertools.product([0.001, 0.1, 0.37, 1.0], [5.0, 25.0, 50.0, 200.0], [0.001, 0.1, 0.5, 1.0])
    ]

    def test_01_neutral_at_equivalence(self):
        """Strong acid + strong base: pH is exactly 7 at the equivalence volume."""
        for titr in self.GRID:
            with self.subTest(titr=titr):
                v_eq = Titration.equivalence_volume_ml(titr)
                self.assertEqual(Titration.ph(v_eq, titr), 7.0)

    def test_02_non_decreasing(self):
        n = 400
        for titr in self.GRID:
            v_eq = Titration.equivalence_volume_ml(titr)
            values = [Titration.ph(1.6 * v_eq * i / n, titr) for i in range(n + 1)]
            with self.subTest(titr=titr):
                for before, after in zip(values, values[1:]):
                    self.assertGreaterEqual(after, before - 1e-9)

    def test_03_reference_values(self):
        titr = TitrationState()
        self.assertAlmostEqual(Titration.equivalence_volume_ml(titr), 50.0)
        self.assertAlmostEqual(Titration.ph(0.0, titr), 1.0)
        # 25 mL of base: half the acid left in 75 mL
        self.assertAlmostEqual(Titration.ph(25.0, titr), -math.log10(0.0025 / 0.075))

    def test_04_sample_and_sanity(self):
        titr = TitrationState()
        series = Titration.sample(titr)
        self.assertEqual(series.x_values[0], 0.0)
        self.assertAlmostEqual(series.x_values[-1], 80.0)
        self.assertEqual(list(series.markers), ["Eq"])
        self.assertAlmostEqual(series.markers["Eq"], 50.0)
        v_eq = Titration.equivalence_volume_ml(titr)
        self.assertEqual(Titration.ph(series.markers["Eq"], titr), 7.0)
        self.assertTrue(Titration.sanity_check(series.x_values, series.y_values, v_eq))

    def test_05_marker_hidden(self):
        series = Titration.sample(TitrationState(mark_equivalence=False))
        self.assertEqual(series.markers, {})

    def test_06_sanity_rejects(self):
        # Decreasing curve
        self.assertFalse(Titration.sanity_check([0, 1, 2, 3, 4, 5], [1, 2, 1, 8, 9, 10], 2.5))
        # Equivalence beyond the sweep
        titr = TitrationState(acid_conc_m=1.0, acid_volume_ml=200.0, base_conc_m=0.001)
        series = Titration.sample(titr)
        self.assertFalse(Titration.sanity_check(series.x_values, series.y_values,
                                                Titration.equivalence_volume_ml(titr)))


class TestAccretionDisk(unittest.TestCase):

    def test_01_isco_proxy(self):
        self.assertAlmostEqual(AccretionDisk.isco_radius(BlackHoleState(spin=0.0)), 3.0)
        self.assertAlmostEqual(AccretionDisk.isco_radius(BlackHoleState(spin=0.7)), 1.6)

    def test_02_profile(self):
        bh = BlackHoleState(mass_msun=4.0, spin=0.0, accretion_rate=2.0)
        series = AccretionDisk.sample(bh, n=200)
        self.assertEqual(len(series.x_values), 201)
        self.assertAlmostEqual(series.x_values[0], 3.0)
        self.assertAlmostEqual(series.x_values[-1], 30.0)
        # 2 · 3^-2 · 4^-0.5
        self.assertAlmostEqual(series.y_values[0], 2.0 / 9.0 / 2.0)
        self.assertAlmostEqual(series.markers["ISCO"], 3.0)


class TestMolecularGeometry(unittest.TestCase):

    def test_01_lookup(self):
        shape = MolecularGeometry.get_shape("tetrahedral")
        self.assertEqual(shape.hybridization, "sp³")
        self.assertEqual(shape.bond_angle, 109.5)
        self.assertEqual(len(shape.positions), 4)
        self.assertEqual(MolecularGeometry.get_shape("unknown").id, "linear")

    def test_02_positions_match_pair_count(self):
        for shape in MolecularGeometry.list_shapes():
            with self.subTest(shape=shape.id):
                self.assertEqual(len(shape.positions), shape.electron_pairs)

    def test_03_describe(self):
        text = MolecularGeometry.describe("octahedral")
        self.assertIn("sp³d²", text)
        self.assertIn("90", text)
        series = MolecularGeometry.bond_angle_series("octahedral")
        self.assertEqual(series.y_values, [90.0, 90.0])


class TestKeyMetrics(unittest.TestCase):

    def test_01_active_domain(self):
        metrics = key_metrics(LabState())
        self.assertAlmostEqual(metrics["tau_s"], 0.1)
        self.assertAlmostEqual(metrics["initial_current_a"], 0.005)

    def test_02_explicit_domain(self):
        state = LabState()
        self.assertAlmostEqual(key_metrics(state, Domain.TITRATION)["equivalence_ml"], 50.0)
        self.assertEqual(key_metrics(state, Domain.GEOMETRY)["hybridization"], "sp³")
        self.assertAlmostEqual(key_metrics(state, Domain.BLACK_HOLE)["isco_rg"], 1.6)
        self.assertAlmostEqual(key_metrics(state, Domain.OHM)["i_max_a"], 0.01)


if __name__ == '__main__':
    unittest.main()
