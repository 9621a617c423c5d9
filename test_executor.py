import math
import unittest
from dataclasses import replace

from command_parser import CommandParser
from executor import ActionExecutor, default_state, _HANDLERS
from models import (
    ACTION_TYPES, action_from_dict, UnknownActionError,
    Domain, LabState, PlotTarget, RCState, OhmState, TitrationState,
    SwitchDomain, Reset,
    RCSet, RCScale, RCPlot, RCMeasure,
    TitrationSet, TitrationRun, TitrationMark,
    OhmPlot,
    GeometrySelect, GeometryDescribe,
    BlackHoleSet, BlackHolePlot
)


class TestActionExecutor(unittest.TestCase):

    def setUp(self):
        self.state = LabState()

    def test_01_every_action_has_a_handler(self):
        self.assertEqual(set(_HANDLERS), set(ACTION_TYPES.values()))

    def test_02_set_then_plot(self):
        """The full RC command: τ = 0.1 s and Vc(0.1 s) ≈ 3.1606 V."""
        print("\nTEST 2: RC set + plot")
        parsed = CommandParser.parse(
            "Set V = 5 V, R = 1 kΩ, C = 100 µF and plot capacitor voltage for 1 s", Domain.RC
        )
        result = ActionExecutor.execute(parsed.actions, self.state)
        series = result.series

        self.assertEqual(result.applied_count, 2)
        self.assertIsNotNone(series)
        self.assertAlmostEqual(series.markers["τ"], 0.1)
        # x = 0.1 s is sample 60 of 600 over one second
        self.assertAlmostEqual(series.x_values[60], 0.1)
        self.assertAlmostEqual(series.y_values[60], 3.1606, places=4)
        print(f"   Vc(0.1 s) = {series.y_values[60]:.4f} V")

    def test_03_scale_sees_previous_state(self):
        parsed = CommandParser.parse("double the resistance and plot current for 5 s", Domain.RC)
        result = ActionExecutor.execute(parsed.actions, self.state)
        self.assertEqual(result.state.rc.resistance_ohm, 2000.0)
        self.assertEqual(result.series.label, "Current I (A)")
        self.assertAlmostEqual(result.series.x_values[-1], 5.0)
        self.assertEqual(result.changed_kinds, ["rc.scale"])

    def test_04_actions_compose_in_order(self):
        actions = [RCSet(resistance_ohm=3000.0), RCScale(resistance_mul=2.0), RCScale(resistance_mul=0.5)]
        result = ActionExecutor.execute(actions, self.state)
        self.assertEqual(result.state.rc.resistance_ohm, 3000.0)
        self.assertEqual(result.applied_count, 3)

    def test_05_set_only_touches_named_fields(self):
        result = ActionExecutor.execute([RCSet(capacitance_f=47e-6)], self.state)
        self.assertEqual(result.state.rc, RCState(voltage_v=5.0, resistance_ohm=1000.0, capacitance_f=47e-6))
        self.assertIn("Updated RC Charging values.", result.messages)

    def test_06_writes_are_clamped(self):
        result = ActionExecutor.execute([RCSet(voltage_v=12.0, resistance_ohm=1.0)], self.state)
        rc = result.state.rc
        self.assertEqual(rc.voltage_v, 12.0)
        self.assertLessEqual(rc.voltage_v / rc.resistance_ohm, 0.1 + 1e-12)

        result = ActionExecutor.execute([RCSet(voltage_v=float("nan"))], self.state)
        self.assertEqual(result.state.rc.voltage_v, 0.0)

    def test_07_input_state_untouched(self):
        before = LabState()
        ActionExecutor.execute([RCSet(resistance_ohm=5000.0), SwitchDomain(to=Domain.OHM), Reset()], self.state)
        self.assertEqual(self.state, before)

    def test_08_switch_keeps_other_labs(self):
        state = replace(self.state, ohm=OhmState(resistance_ohm=220.0, v_max_v=5.0))
        result = ActionExecutor.execute([SwitchDomain(to=Domain.OHM)], state)
        self.assertEqual(result.state.active, Domain.OHM)
        self.assertEqual(result.state.ohm.resistance_ohm, 220.0)
        self.assertEqual(result.state.rc, RCState())

    def test_09_reset_only_active_domain(self):
        state = replace(
            self.state,
            rc=RCState(voltage_v=9.0),
            titration=TitrationState(acid_conc_m=0.5)
        )
        result = ActionExecutor.execute([RCPlot(), Reset()], state)
        self.assertEqual(result.state.rc, default_state(Domain.RC))
        self.assertEqual(result.state.titration.acid_conc_m, 0.5)
        self.assertIsNone(result.series)
        self.assertTrue(result.series_discarded)

    def test_10_plot_after_switch_keeps_series(self):
        result = ActionExecutor.execute([SwitchDomain(to=Domain.OHM), OhmPlot()], self.state)
        self.assertIsNotNone(result.series)
        self.assertFalse(result.series_discarded)
        self.assertAlmostEqual(result.series.y_values[-1], 0.01)

    def test_11_default_duration(self):
        result = ActionExecutor.execute([RCPlot(target=PlotTarget.VOLTAGE)], self.state)
        self.assertAlmostEqual(result.series.x_values[-1], 1.0)
        self.assertIn("Assuming plot duration = 1 s (default).", result.messages)

        result = ActionExecutor.execute([RCPlot(duration_s=1000.0)], self.state)
        self.assertAlmostEqual(result.series.x_values[-1], 60.0)

    def test_12_measure_does_not_mutate(self):
        result = ActionExecutor.execute([RCMeasure(t_s=0.1)], self.state)
        self.assertEqual(result.state, self.state)
        self.assertIsNone(result.series)
        self.assertEqual(result.applied_count, 1)
        self.assertEqual(result.changed_kinds, [])
        self.assertAlmostEqual(result.measurements[0]["vc_v"], 5.0 * (1 - math.exp(-1)))

    def test_13_titration(self):
        actions = [SwitchDomain(to=Domain.TITRATION), TitrationSet(acid_conc_m=0.2), TitrationRun()]
        result = ActionExecutor.execute(actions, self.state)
        self.assertAlmostEqual(result.series.markers["Eq"], 100.0)
        self.assertIn("Equivalence at ≈ 100.00 mL, pH ≈ 7", result.messages)
        self.assertIn("Curve passes analytic sanity checks (sigmoidal; jump near pH≈7).", result.messages)

        result = ActionExecutor.execute([TitrationMark(on=False), TitrationRun()], result.state)
        self.assertFalse(result.state.titration.mark_equivalence)
        self.assertEqual(result.series.markers, {})

    def test_14_geometry(self):
        result = ActionExecutor.execute([GeometrySelect(shape_id="octahedral"), GeometryDescribe()], self.state)
        self.assertEqual(result.state.geometry.shape_id, "octahedral")
        self.assertEqual(result.series.y_values, [90.0, 90.0])
        self.assertTrue(any("sp³d²" in m for m in result.messages))

    def test_15_black_hole(self):
        result = ActionExecutor.execute([BlackHoleSet(spin=2.0), BlackHolePlot()], self.state)
        self.assertEqual(result.state.black_hole.spin, 0.99)
        self.assertAlmostEqual(result.series.markers["ISCO"], 1.02)

    def test_16_unknown_objects_skipped(self):
        result = ActionExecutor.execute([object(), RCScale(voltage_mul=2.0)], self.state)
        self.assertEqual(result.applied_count, 1)
        self.assertEqual(result.state.rc.voltage_v, 10.0)

    def test_17_empty_batch(self):
        result = ActionExecutor.execute([], self.state)
        self.assertEqual(result.applied_count, 0)
        self.assertIs(result.state, self.state)

    def test_18_deterministic(self):
        actions = CommandParser.parse("double the resistance and plot current for 5 s", Domain.RC).actions
        self.assertEqual(ActionExecutor.execute(actions, self.state), ActionExecutor.execute(actions, self.state))

    def test_19_deserialized_actions_are_typed(self):
        """Only finite numbers reach the handlers; ints are widened to float."""
        for bad in [float("nan"), float("inf"), "5", None, False, [1]]:
            with self.subTest(value=bad):
                with self.assertRaises(UnknownActionError):
                    action_from_dict({"kind": "rc.scale", "voltage_mul": bad})

        action = action_from_dict({"kind": "rc.set", "resistance_ohm": 2000, "voltage_v": None})
        self.assertEqual(action, RCSet(resistance_ohm=2000.0))
        self.assertIsInstance(action.resistance_ohm, float)
        self.assertEqual(action_from_dict({"kind": "titr.mark", "on": False}), TitrationMark(on=False))

        result = ActionExecutor.execute([action_from_dict({"kind": "rc.measure", "t_s": 1})], self.state)
        self.assertEqual(result.applied_count, 1)


if __name__ == '__main__':
    unittest.main()
