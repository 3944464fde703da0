import json

from phish_email_analyzer.core.errors import AnalysisError, ErrorKind
from phish_email_analyzer.orchestrator.agent import AgentOrchestrator
from phish_email_analyzer.orchestrator.tracing import error_event, make_event, trace_payload

from conftest import FakeChatModel, tool_reply, verdict_json


def test_event_dict_omits_empty_fields():
    assert make_event("initial", "started", "analysis started").to_dict() == {
        "stage": "initial",
        "status": "started",
        "message": "analysis started",
    }
    event = make_event("tool_calling", "ok", "done", {"tool": "url_analyzer"}, round=2)
    assert event.to_dict()["round"] == 2
    assert event.to_dict()["data"] == {"tool": "url_analyzer"}


def test_error_event_carries_code():
    error = AnalysisError(kind=ErrorKind.PARSE, code="unparsable_output", message="No JSON object found.")
    assert error_event("final", error, round=1).to_dict() == {
        "stage": "final",
        "status": "error",
        "message": "No JSON object found.",
        "round": 1,
        "code": "unparsable_output",
    }


def test_run_trace_records_rounds_and_serializes(registry, make_request):
    model = FakeChatModel(replies=[tool_reply("url_analyzer"), verdict_json(), verdict_json()])
    run = AgentOrchestrator(registry=registry).run(model, make_request())

    stages = [(event.stage, event.round) for event in run.trace]
    assert stages[0] == ("initial", None)
    assert ("tool_calling", 1) in stages
    assert stages[-1] == ("completed", 1)
    assert run.trace[-1].data == {"model_calls": run.model_calls}
    json.dumps(trace_payload(run.trace))
