import pytest

from statement_import.settings import ImportSettings


def test_defaults(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("SI_ENRICHMENT", raising=False)
    settings = ImportSettings.from_env()
    assert settings == ImportSettings()
    assert settings.max_upload_bytes == 25 * 1024 * 1024
    assert settings.enrichment == "auto"


def test_values_from_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SI_PREVIEW_ROWS", "5")
    monkeypatch.setenv("SI_ENRICH_TIMEOUT_SEC", "2.5")
    monkeypatch.setenv("SI_ENRICHMENT", "OpenAI")
    monkeypatch.setenv("SI_OPENAI_MODEL", " gpt-test ")
    monkeypatch.setenv("SI_COMMIT_CHUNK_SIZE", "50")
    settings = ImportSettings.from_env()
    assert (settings.preview_rows, settings.enrich_timeout_sec) == (5, 2.5)
    assert settings.enrichment == "openai"
    assert settings.openai_model == "gpt-test"
    assert settings.commit_chunk_size == 50


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("SI_PREVIEW_ROWS", "many"),
        ("SI_PREVIEW_ROWS", "0"),
        ("SI_ENRICH_TIMEOUT_SEC", "-1"),
        ("SI_ENRICH_TIMEOUT_SEC", "soon"),
        ("SI_ENRICHMENT", "sometimes"),
    ],
)
def test_malformed_values_fall_back_to_defaults(monkeypatch: pytest.MonkeyPatch, name, value):
    monkeypatch.delenv("SI_ENRICHMENT", raising=False)
    monkeypatch.setenv(name, value)
    assert ImportSettings.from_env() == ImportSettings()


def test_enrichment_can_be_switched_off(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SI_ENRICHMENT", "false")
    assert ImportSettings.from_env().enrichment == "off"
