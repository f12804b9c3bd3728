from __future__ import annotations

import json
from pathlib import Path

import pytest

from leadscout import cli
from leadscout.models.research import CompanyMetadata
from leadscout.services.research.domain import DomainValidator
from leadscout.services.research.errors import PipelineError
from leadscout.services.research.llm import ModelTurn
from leadscout.services.research.pipeline import PipelineConfig, ResearchPipeline
from leadscout.services.research.search import SearchTool
from tests.helpers.fakes import FakeSearchProvider, ScriptedModel, StaticResolver, hit, person, search_turn, verdict

EVIDENCE = "Jane Doe is the CEO and founder of Acme (acme.io). " * 4


def _factory():
    model = ScriptedModel(
        [
            search_turn('"acme.io" company'),
            ModelTurn(text="Acme builds rockets."),
            search_turn('"acme.io" founders CEO'),
            ModelTurn(text="done"),
        ],
        metadata=[CompanyMetadata(name="Acme")],
        verdicts=[verdict(person("Jane Doe"))],
    )
    provider = FakeSearchProvider([hit("Acme", EVIDENCE)])
    return lambda: ResearchPipeline(DomainValidator(StaticResolver()), model, SearchTool(provider), PipelineConfig())


def test_cli_prints_result_json(capsys):
    exit_code = cli.main(["acme.io"], pipeline_factory=_factory())

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["company"] == "Acme"
    assert payload["people"][0]["name"] == "Jane Doe"


def test_cli_writes_output_file(tmp_path: Path):
    output = tmp_path / "out" / "acme.json"

    exit_code = cli.main(["acme.io", "--output", str(output)], pipeline_factory=_factory())

    assert exit_code == 0
    assert json.loads(output.read_text(encoding="utf-8"))["domain"] == "acme.io"


def test_cli_reports_pipeline_errors(capsys):
    exit_code = cli.main(["not a domain"], pipeline_factory=_factory())

    assert exit_code == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload["status"] == 400
    assert payload["code"] == "400_INVALID_DOMAIN"


def test_cli_fails_when_pipeline_unavailable():
    def _unavailable():
        raise PipelineError("not configured", code="500_NOT_CONFIGURED")

    assert cli.main(["acme.io"], pipeline_factory=_unavailable) == 1


def test_cli_requires_query():
    with pytest.raises(SystemExit) as excinfo:
        cli.main([], pipeline_factory=_factory())

    assert excinfo.value.code == 2
