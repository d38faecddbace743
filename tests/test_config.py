from pathlib import Path

import imgstamp
from imgstamp.config import Settings


def test_runtime_dirs_follow_working_directory():
    settings = Settings()

    assert not settings.LOGS_DIR.is_absolute()
    assert not settings.EXPORT_DIR.is_absolute()
    assert settings.FONTS_DIR.is_relative_to(Path(imgstamp.__file__).parent)


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("IMGSTAMP_LOGS_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("IMGSTAMP_RIGHT_MODE_ASPECT", "1.5")

    settings = Settings()

    assert settings.LOGS_DIR == tmp_path / "logs"
    assert settings.stamp_config().right_mode_aspect == 1.5
    assert Settings().stamp_config().font_size_ratio == 0.028
