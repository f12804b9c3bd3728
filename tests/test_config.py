from __future__ import annotations

from leadscout.config import Settings
from leadscout.services.research.pipeline import PipelineConfig


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("PEOPLE_MAX_ROUND_TRIPS", "7")
    monkeypatch.setenv("MIN_EVIDENCE_CHARS", "250")
    monkeypatch.setenv("RESEARCH_MODEL", "gpt-4.1")

    config = PipelineConfig.from_settings(Settings(_env_file=None))

    assert config.people_max_round_trips == 7
    assert config.min_evidence_chars == 250
    assert config.research_model == "gpt-4.1"
    assert config.metadata_model == "gpt-4o-mini"


def test_pipeline_defaults_match_settings_defaults(monkeypatch):
    for field in PipelineConfig.__dataclass_fields__:
        monkeypatch.delenv(field.upper(), raising=False)

    assert PipelineConfig.from_settings(Settings(_env_file=None)) == PipelineConfig()
