"""設定ファイル読み込みのユニットテスト"""

from pathlib import Path

import pytest
from k1s0_flags import FileRetriever, FlagEngine, FlagsError, FlagsErrorCodes, load_settings

from conftest import TESTDATA


def test_load_settings(tmp_path: Path) -> None:
    """設定ファイルから Config を作れること。"""
    settings_file = tmp_path / "flags-settings.yaml"
    settings_file.write_text(
        f"polling_interval: 30\nfile_format: json\npaths:\n  - {TESTDATA / 'flags.json'}\n"
    )
    settings = load_settings(settings_file)
    config = settings.to_config()

    assert config.polling_interval == 30.0
    assert config.file_format == "json"
    assert config.retrievers is not None
    assert isinstance(config.retrievers[0], FileRetriever)
    with FlagEngine(config) as engine:
        assert engine.file_format == "json"


def test_load_settings_defaults(tmp_path: Path) -> None:
    """省略時は 60 秒間隔・形式は既定（yaml）。"""
    settings_file = tmp_path / "flags-settings.yaml"
    settings_file.write_text("paths: [flags.yaml]\n")
    config = load_settings(settings_file).to_config()
    assert config.polling_interval == 60.0
    assert config.file_format == ""


def test_load_settings_file_not_found(tmp_path: Path) -> None:
    """存在しないファイルで READ_FILE_ERROR。"""
    with pytest.raises(FlagsError) as exc_info:
        load_settings(tmp_path / "missing.yaml")
    assert exc_info.value.code == FlagsErrorCodes.READ_FILE


def test_load_settings_invalid_yaml(tmp_path: Path) -> None:
    """不正 YAML で PARSE_YAML_ERROR。"""
    bad_file = tmp_path / "bad.yaml"
    bad_file.write_text("paths: {invalid: yaml: content:\n")
    with pytest.raises(FlagsError) as exc_info:
        load_settings(bad_file)
    assert exc_info.value.code == FlagsErrorCodes.PARSE_YAML


@pytest.mark.parametrize(
    "content",
    [
        "paths: []\n",
        "polling_interval: 10\n",
        "polling_interval: -1\npaths: [a.yaml]\n",
        "file_format: xml\npaths: [a.yaml]\n",
    ],
)
def test_load_settings_validation_error(tmp_path: Path, content: str) -> None:
    """検証失敗で VALIDATION_ERROR。"""
    bad_file = tmp_path / "bad.yaml"
    bad_file.write_text(content)
    with pytest.raises(FlagsError) as exc_info:
        load_settings(bad_file)
    assert exc_info.value.code == FlagsErrorCodes.VALIDATION


def test_load_settings_not_a_mapping(tmp_path: Path) -> None:
    """トップレベルがマッピングでない場合は PARSE_YAML_ERROR。"""
    bad_file = tmp_path / "list.yaml"
    bad_file.write_text("- flags.yaml\n")
    with pytest.raises(FlagsError) as exc_info:
        load_settings(bad_file)
    assert exc_info.value.code == FlagsErrorCodes.PARSE_YAML
    assert "mapping" in str(exc_info.value)


def test_load_settings_empty_file(tmp_path: Path) -> None:
    """空ファイルは空の設定として検証され、paths 不足で VALIDATION_ERROR。"""
    empty_file = tmp_path / "empty.yaml"
    empty_file.write_text("")
    with pytest.raises(FlagsError) as exc_info:
        load_settings(empty_file)
    assert exc_info.value.code == FlagsErrorCodes.VALIDATION
