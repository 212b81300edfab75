"""Unit tests for configuration models and loader."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from waveplan.config.loader import (
    ConfigError,
    create_default_config,
    load_config,
    load_config_or_default,
)
from waveplan.config.models import ProjectConfig, WaveplanConfig


def test_project_config_defaults():
    """Test ProjectConfig default values."""
    config = ProjectConfig(root=Path("/tmp/project"))
    assert config.profile_type == "app"
    assert config.catalog_file == Path("/tmp/project/docs/requirements/FEATURE_CATALOG.md")


def test_project_config_absolute_catalog():
    config = ProjectConfig(root=Path("/tmp/project"), catalog_path=Path("/data/catalog.yml"))
    assert config.catalog_file == Path("/data/catalog.yml")


def test_project_config_invalid_profile():
    with pytest.raises(ValidationError):
        ProjectConfig(root=Path("/tmp"), profile_type="desktop")


def test_waveplan_config_state_dir():
    config = WaveplanConfig(project={"root": Path("/tmp/project")})
    assert config.state_dir == Path("/tmp/project/.waveplan")
    assert config.scheduling.foundation_prefixes == ["AUTH", "ACCT"]
    assert config.logging.level == "INFO"


def test_load_config_missing(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "config.yml")


def test_load_config_empty(tmp_path):
    config_path = tmp_path / "config.yml"
    config_path.write_text("")
    with pytest.raises(ConfigError, match="Empty"):
        load_config(config_path)


def test_load_config_invalid_yaml(tmp_path):
    config_path = tmp_path / "config.yml"
    config_path.write_text("project: [unclosed")
    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(config_path)


def test_load_config_validation_error(tmp_path):
    config_path = tmp_path / "config.yml"
    config_path.write_text("project:\n  profile_type: desktop\n")
    with pytest.raises(ConfigError, match="validation failed"):
        load_config(config_path)


def test_create_and_load_default_config(tmp_path):
    """Test generated config loads with root resolved against its location."""
    config_path = tmp_path / ".waveplan" / "config.yml"
    create_default_config(config_path, profile_type="api", root=tmp_path)

    config = load_config(config_path)

    assert config.project.root == tmp_path.resolve()
    assert config.project.profile_type == "api"
    assert config.state_dir == tmp_path.resolve() / ".waveplan"
    assert config.state.write_status_file is True


def test_load_config_or_default_without_file(tmp_path):
    config = load_config_or_default(tmp_path / "missing.yml", root=tmp_path)
    assert config.project.root == tmp_path
    assert config.project.profile_type == "app"
