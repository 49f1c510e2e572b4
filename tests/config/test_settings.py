from __future__ import annotations

from pathlib import Path

from longflag.config import load_settings


def test_load_settings_reads_yaml(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    settings_path = config_dir / "settings.yaml"
    settings_path.write_text(
        """
evaluate:
  threshold: 2.5
  method: mean_change
output:
  dir: custom_results
        """
    )
    settings = load_settings(settings_path, environ={})
    assert settings.threshold == 2.5
    assert settings.method == "mean_change"
    assert settings.output_dir == Path("custom_results")
    assert settings.telemetry_dir == Path("custom_results")
    assert settings.telemetry_enabled is True


def test_defaults_without_settings_file(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "missing.yaml", environ={})
    assert settings.threshold == 1.0
    assert settings.method == "first_last"
    assert settings.get("evaluate", "nope", default="fallback") == "fallback"


def test_env_override(tmp_path: Path, monkeypatch) -> None:
    settings_path = tmp_path / "settings.yaml"
    settings_path.write_text("evaluate:\n  threshold: 2\n  method: first_last\n")
    monkeypatch.setenv("LONGFLAG_EVALUATE__THRESHOLD", "4.5")
    monkeypatch.setenv("LONGFLAG_TELEMETRY__ENABLED", "false")
    settings = load_settings(settings_path)
    assert settings.threshold == 4.5
    assert settings.method == "first_last"
    assert settings.telemetry_enabled is False


def test_explicit_environ_wins_over_process_env(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("LONGFLAG_EVALUATE__METHOD", "all_timepoints")
    settings = load_settings(tmp_path / "missing.yaml", environ={"LONGFLAG_OUTPUT__DIR": "elsewhere"})
    assert settings.method == "first_last"
    assert settings.output_dir == Path("elsewhere")
