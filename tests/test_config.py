import pytest

from imgtools.config import Settings, load_settings

CONFIG_TEXT = """
AppDebug: true
HttpServer:
  Port: ":8080"
Mysql:
  Port: 3306
  DataBase: tools
  Flag: "false"
  Count: "12"
  Bad: "abc"
"""


def write_config(base, text=CONFIG_TEXT):
    folder = base / "config"
    folder.mkdir()
    (folder / "config.yml").write_text(text, encoding="utf-8")


def test_load_settings_reads_nested_values(tmp_path):
    write_config(tmp_path)
    settings = load_settings(tmp_path)
    assert settings.get("HttpServer.Port") == ":8080"
    assert settings.get("Mysql.DataBase") == "tools"


def test_keys_are_case_insensitive(tmp_path):
    write_config(tmp_path)
    settings = load_settings(tmp_path)
    assert settings.get("mysql.database") == settings.get("MYSQL.DATABASE") == "tools"


def test_get_returns_default_when_missing(tmp_path):
    write_config(tmp_path)
    settings = load_settings(tmp_path)
    assert settings.get("Mysql.Missing", "fallback") == "fallback"
    assert settings.get("HttpServer.Port.Deeper") is None


def test_get_bool_and_int(tmp_path):
    write_config(tmp_path)
    settings = load_settings(tmp_path)
    assert settings.get_bool("AppDebug") is True
    assert settings.get_bool("Mysql.Flag") is False
    assert settings.get_bool("Mysql.Missing") is False
    assert settings.get_int("Mysql.Port") == 3306
    assert settings.get_int("Mysql.Count") == 12
    assert settings.get_int("Mysql.Bad") == 0
    assert settings.get_int("Mysql.Missing") == 0


def test_settings_from_mapping_normalises_keys():
    settings = Settings({"Logs": {"MaxSize": 7, "Compress": 1}})
    assert settings.get_int("logs.maxsize") == 7
    assert settings.get_bool("LOGS.COMPRESS") is True


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path)


def test_empty_file_gives_empty_settings(tmp_path):
    write_config(tmp_path, "")
    settings = load_settings(tmp_path)
    assert settings.get("AppDebug") is None


def test_non_mapping_top_level_raises(tmp_path):
    write_config(tmp_path, "- a\n- b\n")
    with pytest.raises(ValueError):
        load_settings(tmp_path)