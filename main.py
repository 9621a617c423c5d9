# main.py

import logging
from typing import Any, Dict, List, Optional
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from app import LabSession, parse, series_to_dict
from constants import VERSION
from core_physics import key_metrics
from models import Domain, SampledSeries, action_from_dict

# --- 1. CONFIGURATION & LOGGING ---
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("vlab-api")

app = FastAPI(
    title="VLab Command API",
    version=VERSION,
    description="Free-text commands for the virtual lab simulators "
                "(RC charging, Ohm's law, titration, black hole disk, VSEPR).",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One bench per process; the session serializes its own commands
session = LabSession()


@app.get("/")
def read_root():
    return {"status": "active", "message": "VLab command API is running."}


@app.get("/health")
def health_check():
    """Liveness probe"""
    return {"status": "active", "version": VERSION, "module": "vlab-command-core"}


# --- 2. INPUT SCHEMA ---
class ParseRequest(BaseModel):
    text: str = Field(..., max_length=500, description="Operator command")
    active_domain: Optional[str] = Field(None, description="rc | ohm | titr | bh | vsepr; defaults to the session's")

    class Config:
        json_schema_extra = {
            "example": {"text": "Set V = 5 V, R = 1 kΩ, C = 100 µF and plot capacitor voltage for 1 s",
                        "active_domain": "rc"}
        }


class CommandRequest(BaseModel):
    text: str = Field(..., max_length=500)


class BatchRequest(BaseModel):
    commands: List[str] = Field(..., max_length=50, description="Executed strictly in order")


class ExecuteRequest(BaseModel):
    actions: List[Dict[str, Any]] = Field(..., description='e.g. [{"kind": "rc.set", "resistance_ohm": 2000}]')


# --- 3. RESPONSE SCHEMA ---
class ExecutionResponse(BaseModel):
    applied_count: int
    changed_kinds: List[str]
    messages: List[str]
    measurements: List[dict]
    state: dict
    series: Optional[SampledSeries] = None  # Pydantic handles the dataclass


class CommandResponse(BaseModel):
    command: str
    ok: bool
    actions: List[dict]
    recognized: List[str]
    issues: List[str]
    inferred_domain: Optional[str] = None
    suggestion: Optional[str] = None
    applied_count: int
    changed_kinds: List[str]
    messages: List[str]
    measurements: List[dict]
    feedback: List[str]
    state: dict
    series: Optional[SampledSeries] = None


def _command_payload(outcome) -> dict:
    data = outcome.to_dict()
    # Only the series this command produced; GET /state has the one on screen
    data["series"] = series_to_dict(outcome.execution.series) if outcome.execution else None
    return data


# --- 4. ENDPOINTS ---

@app.post("/parse")
def parse_command(request: ParseRequest):
    """Dry run: what the command would do. The session is untouched."""
    try:
        active = Domain.parse(request.active_domain) if request.active_domain else session.state.active
        return parse(request.text, active).to_dict()
    except ValueError as e:
        logger.warning(f"Parse request rejected: {str(e)}")
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error(f"Parser failure: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal parser error")


@app.post("/execute", response_model=ExecutionResponse)
def execute_actions(request: ExecuteRequest):
    """Applies explicit actions to the session state, in order."""
    try:
        actions = [action_from_dict(item) for item in request.actions]
        result = session.execute_actions(actions)
        return {
            "applied_count": result.applied_count,
            "changed_kinds": result.changed_kinds,
            "messages": result.messages,
            "measurements": result.measurements,
            "state": result.state.to_dict(),
            "series": series_to_dict(result.series),
        }
    except ValueError as e:
        logger.warning(f"Execute request rejected: {str(e)}")
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error(f"Executor failure: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal executor error")


@app.post("/command", response_model=CommandResponse)
def run_command(request: CommandRequest):
    """Parse + execute against the session. `ok` is False when nothing ran."""
    try:
        logger.info(f"Command: {request.text!r}")
        return _command_payload(session.run_command(request.text))
    except Exception as e:
        logger.error(f"Command failure: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal command error")


@app.post("/commands/batch", response_model=List[CommandResponse])
def run_batch(request: BatchRequest):
    """
    Runs a generated command list one at a time. Each entry reports the
    state as it stood after that command.
    """
    try:
        return [_command_payload(outcome) for outcome in session.run_batch(request.commands)]
    except Exception as e:
        logger.error(f"Batch failure: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal command error")


@app.get("/state")
def get_state():
    return session.snapshot()


@app.post("/state/{domain}/fields", response_model=ExecutionResponse)
def set_fields(domain: str, values: Dict[str, str]):
    """Form-style edit: {"resistance_ohm": "2.2k ohm", "voltage_v": "9"}."""
    try:
        result = session.apply_field_inputs(domain, values)
        return {
            "applied_count": result.applied_count,
            "changed_kinds": result.changed_kinds,
            "messages": result.messages,
            "measurements": result.measurements,
            "state": result.state.to_dict(),
            "series": series_to_dict(result.series),
        }
    except ValueError as e:
        logger.warning(f"Field update rejected: {str(e)}")
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error(f"Field update failure: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal executor error")


@app.get("/examples/{domain}")
def get_example(domain: str):
    try:
        lab = Domain.parse(domain)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"domain": lab.value, "example": LabSession.example(lab), "metrics": key_metrics(session.state, lab)}


@app.get("/history")
def get_history():
    return {"history": list(session.history)}
