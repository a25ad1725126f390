"""Tests for configuration schema and loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError


class TestSettingsDefaults:
    """Defaults match the documented engine behavior."""

    def test_defaults(self) -> None:
        from quarry.core.config import QuarrySettings

        settings = QuarrySettings()
        assert settings.query.max_page_size == 500
        assert settings.query.default_page_size == 50
        assert settings.cache.max_size_bytes == 64 * 1024 * 1024
        assert settings.cache.compute_workers == 4
        assert settings.cache.wait_timeout_seconds is None
        assert settings.logging.level == "INFO"
        assert settings.dataset.columns == []

    def test_settings_are_frozen(self) -> None:
        from quarry.core.config import QuerySettings

        settings = QuerySettings()
        with pytest.raises(ValidationError):
            settings.max_page_size = 10  # type: ignore[misc]

    def test_unknown_field_rejected(self) -> None:
        from quarry.core.config import CacheSettings

        with pytest.raises(ValidationError):
            CacheSettings(max_size_bytes=1024, bogus=True)  # type: ignore[call-arg]

    def test_default_page_cannot_exceed_max(self) -> None:
        from quarry.core.config import QuerySettings

        with pytest.raises(ValidationError, match="exceeds"):
            QuerySettings(max_page_size=10, default_page_size=20)

    def test_non_positive_budget_rejected(self) -> None:
        from quarry.core.config import CacheSettings

        with pytest.raises(ValidationError):
            CacheSettings(max_size_bytes=0)

    def test_duplicate_column_names_rejected(self) -> None:
        from quarry.core.config import DatasetSettings

        with pytest.raises(ValidationError, match="Duplicate"):
            DatasetSettings(
                columns=[
                    {"name": "fare", "type": "numeric"},
                    {"name": "fare", "type": "categorical"},
                ]
            )

    def test_dataset_schema_conversion(self) -> None:
        from quarry.contracts import ColumnDef, ColumnType
        from quarry.core.config import DatasetSettings

        settings = DatasetSettings(
            columns=[{"name": "cabin", "type": "categorical", "required": False}]
        )
        assert settings.schema() == [
            ColumnDef(name="cabin", type=ColumnType.CATEGORICAL, required=False)
        ]


class TestLoadSettings:
    """YAML file plus QUARRY_ environment overrides."""

    def test_load_from_yaml(self, tmp_path: Path) -> None:
        from quarry.contracts import ColumnType
        from quarry.core.config import load_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text(
            """
query:
  max_page_size: 200
cache:
  compute_workers: 2
dataset:
  columns:
    - name: pclass
      type: numeric
    - name: sex
      type: categorical
"""
        )

        settings = load_settings(config_file)
        assert settings.query.max_page_size == 200
        assert settings.query.default_page_size == 50
        assert settings.cache.compute_workers == 2
        assert [c.name for c in settings.dataset.columns] == ["pclass", "sex"]
        assert settings.dataset.columns[1].type is ColumnType.CATEGORICAL

    def test_environment_overrides_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        from quarry.core.config import load_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text("cache:\n  max_size_bytes: 1024\n")
        monkeypatch.setenv("QUARRY_CACHE__MAX_SIZE_BYTES", "4096")

        settings = load_settings(config_file)
        assert settings.cache.max_size_bytes == 4096

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        from quarry.core.config import load_settings

        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.yaml")

    def test_invalid_values_raise_validation_error(self, tmp_path: Path) -> None:
        from quarry.core.config import load_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text("query:\n  max_page_size: -1\n")

        with pytest.raises(ValidationError):
            load_settings(config_file)

    def test_resolve_config_includes_defaults(self) -> None:
        from quarry.core.config import QuarrySettings, resolve_config

        resolved = resolve_config(QuarrySettings())
        assert resolved["query"]["max_page_size"] == 500
        assert resolved["logging"]["json_output"] is False
