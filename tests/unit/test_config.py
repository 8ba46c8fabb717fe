"""Tests for settings resolution."""
from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from ragia.config import Settings, load_settings
from ragia.errors import ConfigError


def test_defaults():
    settings = load_settings(environ={})

    assert settings.embedding_dim == 768
    assert settings.chunk_size == 800
    assert settings.top_k == 4
    assert settings.llm_max_tokens == 512
    assert settings.llm_temperature == pytest.approx(0.2)
    assert settings.llm_context_chars == 1200
    assert settings.port == 3000
    assert settings.ingest_path == Path("data")
    assert settings.llm_enabled is True


def test_environment_overrides():
    settings = load_settings(
        environ={
            "EMBEDDINGS_DIM": "384",
            "TOP_K": "7",
            "LLM_ENABLED": "false",
            "INGEST_PATH": "/srv/docs",
        }
    )

    assert settings.embedding_dim == 384
    assert settings.top_k == 7
    assert settings.llm_enabled is False
    assert settings.ingest_path == Path("/srv/docs")


def test_empty_env_value_ignored():
    assert load_settings(environ={"TOP_K": ""}).top_k == 4


def test_yaml_file_then_environment(tmp_path):
    config_file = tmp_path / "ragia.yaml"
    config_file.write_text("top_k: 9\nchunk_size: 500\n", encoding="utf-8")

    settings = load_settings(environ={"TOP_K": "2"}, config_file=config_file)

    assert settings.chunk_size == 500
    assert settings.top_k == 2


def test_config_file_from_environment(tmp_path):
    config_file = tmp_path / "ragia.yaml"
    config_file.write_text("llm_model: other-model\n", encoding="utf-8")

    settings = load_settings(environ={"RAGIA_CONFIG": str(config_file)})

    assert settings.llm_model == "other-model"


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigError):
        load_settings(environ={}, config_file=tmp_path / "absent.yaml")


def test_non_mapping_config_file(tmp_path):
    config_file = tmp_path / "ragia.yaml"
    config_file.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_settings(environ={}, config_file=config_file)


@pytest.mark.parametrize(
    "env",
    [
        {"EMBEDDINGS_DIM": "0"},
        {"EMBEDDINGS_DIM": "many"},
        {"TOP_K": "-1"},
        {"PORT": "70000"},
    ],
)
def test_invalid_values(env):
    with pytest.raises(ConfigError):
        load_settings(environ=env)


def test_unknown_yaml_key_rejected(tmp_path):
    config_file = tmp_path / "ragia.yaml"
    config_file.write_text("top_kk: 3\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_settings(environ={}, config_file=config_file)


def test_derived_paths():
    settings = Settings(data_dir=Path("/var/ragia"))

    assert settings.db_path == Path("/var/ragia/ragia.sqlite")
    assert settings.vector_index_path == Path("/var/ragia/vectors.index")


@pytest.mark.parametrize(
    "env",
    [
        {"LLM_URL": "http://[::1/v1/chat/completions"},
        {"EMBEDDINGS_URL": "localhost:1234/v1/embeddings"},
        {"EMBEDDINGS_URL": "ftp://models.test/embeddings"},
    ],
)
def test_malformed_urls_rejected(env):
    with pytest.raises(ConfigError):
        load_settings(environ=env)


def test_empty_llm_url_allowed():
    assert Settings(llm_url="").llm_url == ""


def test_empty_embeddings_url_rejected():
    with pytest.raises(PydanticValidationError):
        Settings(embeddings_url="")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("*", "*"),
        ("", "*"),
        ("http://a.test", ["http://a.test"]),
        (" http://a.test , https://b.test ,", ["http://a.test", "https://b.test"]),
        ("http://a.test,*", "*"),
    ],
)
def test_cors_origins(raw, expected):
    assert Settings(cors_origins=raw).cors_allow_origin == expected


def test_cors_origins_from_environment():
    settings = load_settings(environ={"CORS_ORIGINS": "http://a.test,http://b.test"})

    assert settings.cors_allow_origin == ["http://a.test", "http://b.test"]
