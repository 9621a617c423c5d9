# --- METADATA ---
from constants import VERSION

__version__ = VERSION
__model_date__ = "2026-10-19"

"""
VLab: Lab Session
=================
Caller-side orchestration around the two core calls:

    parse(text, active_domain) -> ParseResult
    execute(actions, state)    -> ExecutionResult

The session owns the current LabState, the last plotted series and the
command history. Commands run one at a time under a lock.
"""

import logging
import threading
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

from command_parser import CommandParser
from constants import EXAMPLE_COMMANDS, HISTORY_LIMIT, VSEPR_LIBRARY
from core_physics import key_metrics
from executor import ActionExecutor
from models import (
    Domain,
    LabState,
    UnitFamily,
    UnknownActionError,
    ParsedAction,
    ParseResult,
    ExecutionResult,
    CommandFeedback,
    SampledSeries,
    RCSet, OhmSet, TitrationSet, BlackHoleSet, GeometrySelect
)
from units import parse_bare_float, parse_with_fallback

logger = logging.getLogger("vlab-session")


def parse(text: str, active_domain) -> ParseResult:
    return CommandParser.parse(text, active_domain)


def execute(actions: List[ParsedAction], state: LabState) -> ExecutionResult:
    return ActionExecutor.execute(actions, state)


# Form fields: which action carries them and how their text is read
# (None = bare number, no unit)
FIELD_INPUTS = {
    Domain.RC: (RCSet, {
        "voltage_v": UnitFamily.VOLTS,
        "resistance_ohm": UnitFamily.OHMS,
        "capacitance_f": UnitFamily.FARADS,
    }),
    Domain.OHM: (OhmSet, {
        "resistance_ohm": UnitFamily.OHMS,
        "v_max_v": UnitFamily.VOLTS,
    }),
    Domain.TITRATION: (TitrationSet, {
        "acid_conc_m": UnitFamily.MOLAR,
        "acid_volume_ml": UnitFamily.MILLILITERS,
        "base_conc_m": UnitFamily.MOLAR,
    }),
    Domain.BLACK_HOLE: (BlackHoleSet, {
        "mass_msun": None,
        "spin": None,
        "accretion_rate": None,
    }),
}


def series_to_dict(series: Optional[SampledSeries]) -> Optional[dict]:
    return asdict(series) if series is not None else None


@dataclass
class CommandOutcome:
    """Everything one operator command produced."""
    command: str
    ok: bool
    parse: ParseResult
    execution: Optional[ExecutionResult] = None
    feedback: Optional[CommandFeedback] = None
    state: Optional[LabState] = None  # Session state right after this command

    def to_dict(self) -> dict:
        data = {"command": self.command, "ok": self.ok}
        data.update(self.parse.to_dict())
        if self.execution is not None:
            data["applied_count"] = self.execution.applied_count
            data["changed_kinds"] = list(self.execution.changed_kinds)
            data["messages"] = list(self.execution.messages)
            data["measurements"] = list(self.execution.measurements)
        else:
            data["applied_count"] = 0
            data["changed_kinds"] = []
            data["messages"] = []
            data["measurements"] = []
        data["feedback"] = list(self.feedback.lines) if self.feedback else []
        data["state"] = self.state.to_dict() if self.state is not None else None
        if self.feedback and self.feedback.suggestion:
            data["suggestion"] = self.feedback.suggestion
        return data


class LabSession:
    """One operator's lab bench: state, last plot, recent commands."""

    def __init__(self, state: Optional[LabState] = None):
        self.state = state or LabState()
        self.last_series: Optional[SampledSeries] = None
        self.history: List[str] = []
        self._lock = threading.Lock()

    # --- Commands ---

    def run_command(self, text: str, remember: bool = True) -> CommandOutcome:
        with self._lock:
            return self._run(text, remember)

    def run_batch(self, commands: List[str]) -> List[CommandOutcome]:
        """Runs commands strictly in order; each sees the previous one's state."""
        with self._lock:
            return [self._run(text, True) for text in commands]

    def execute_actions(self, actions: List[ParsedAction]) -> ExecutionResult:
        """Applies pre-built actions (e.g. deserialized from a request)."""
        with self._lock:
            return self._apply(actions)

    def _run(self, text: str, remember: bool) -> CommandOutcome:
        cleaned = (text or "").strip()
        if not cleaned:
            result = ParseResult(issues=["empty command"])
            feedback = CommandFeedback(ok=False, lines=["Type a command first."])
            return CommandOutcome(command="", ok=False, parse=result, feedback=feedback, state=self.state)

        if remember:
            self._remember(cleaned)

        result = parse(cleaned, self.state.active)
        if not result.actions:
            logger.info("command not understood: %r", cleaned)
            return CommandOutcome(
                command=cleaned, ok=False, parse=result,
                feedback=CommandParser.explain_failure(cleaned, result),
                state=self.state
            )

        execution = self._apply(result.actions)
        if execution.applied_count == 0:
            logger.info("command produced nothing to execute: %r", cleaned)
            return CommandOutcome(
                command=cleaned, ok=False, parse=result, execution=execution,
                feedback=CommandParser.explain_failure(cleaned, result),
                state=self.state
            )

        logger.info("command ok: %r -> %s", cleaned, [a.kind for a in result.actions])
        return CommandOutcome(command=cleaned, ok=True, parse=result, execution=execution, state=self.state)

    def _apply(self, actions: List[ParsedAction]) -> ExecutionResult:
        execution = execute(actions, self.state)
        self.state = execution.state
        if execution.series is not None:
            self.last_series = execution.series
        elif execution.series_discarded:
            self.last_series = None
        return execution

    def _remember(self, text: str):
        if text in self.history:
            self.history.remove(text)
        self.history.insert(0, text)
        del self.history[HISTORY_LIMIT:]

    # --- Form-style edits ---

    def apply_field_inputs(self, domain, inputs: Dict[str, str]) -> ExecutionResult:
        """
        Edits one domain from raw text fields ("1k ohm", "0.2 M", "7").
        Unreadable fields keep their previous value and are reported in
        the messages; the active domain does not change.
        """
        domain = Domain.parse(domain)
        if domain == Domain.GEOMETRY:
            shape_id = str(inputs.get("shape_id") or "").strip().lower()
            unknown = [name for name in inputs if name != "shape_id"]
            if unknown:
                raise UnknownActionError(f"Unknown field(s) for {domain.value}: {', '.join(unknown)}")
            actions = [GeometrySelect(shape_id=shape_id)] if shape_id in VSEPR_LIBRARY.SHAPES else []
            skipped = []
            if "shape_id" in inputs and not actions:
                skipped.append(f"Ignored shape_id: unknown geometry {shape_id!r}")
            with self._lock:
                execution = self._apply(actions)
            execution.messages[:0] = skipped
            return execution

        action_cls, families = FIELD_INPUTS[domain]
        unknown = [name for name in inputs if name not in families]
        if unknown:
            raise UnknownActionError(f"Unknown field(s) for {domain.value}: {', '.join(unknown)}")

        values = {}
        skipped = []
        for name, raw in inputs.items():
            raw = raw if isinstance(raw, str) else str(raw)
            family = families[name]
            value = parse_with_fallback(raw, family) if family else parse_bare_float(raw)
            if value is None:
                skipped.append(f"Ignored {name}: could not read a number from {raw!r}")
                continue
            values[name] = value

        with self._lock:
            execution = self._apply([action_cls(**values)] if values else [])
        execution.messages[:0] = skipped
        logger.info("fields %s updated=%s skipped=%d", domain.value, sorted(values), len(skipped))
        return execution

    # --- Read-only views ---

    @staticmethod
    def example(domain) -> str:
        return EXAMPLE_COMMANDS[Domain.parse(domain).value]

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "state": self.state.to_dict(),
                "metrics": key_metrics(self.state),
                "series": series_to_dict(self.last_series),
            }
