import pytest

from copydedup.config import EngineSettings, load_config


def test_env_override(monkeypatch, tmp_path):
    cfg_file = tmp_path / "cfg.yaml"
    cfg_file.write_text("engine:\n  num_bands: 16\n  similarity_threshold: 0.8\n", encoding="utf-8")
    monkeypatch.setenv("COPYDEDUP_ENGINE__NUM_BANDS", "32")
    config = load_config(cfg_file)
    assert config.engine.num_bands == 32
    assert config.engine.similarity_threshold == 0.8
    assert config.engine.rows_per_band == 4


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "absent.yaml")
    assert config.engine.num_hash_functions == 128
    assert config.library.search_max_results == 20
    assert config.judge.batch_size == 20


def test_env_var_expansion(monkeypatch, tmp_path):
    cfg_file = tmp_path / "cfg.yaml"
    cfg_file.write_text('judge:\n  api_key: "${TEST_JUDGE_KEY}"\n', encoding="utf-8")
    monkeypatch.setenv("TEST_JUDGE_KEY", "secret")
    assert load_config(cfg_file).judge.api_key == "secret"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"num_hash_functions": 100, "num_bands": 16},
        {"num_hash_functions": 8, "num_bands": 16},
        {"num_bands": 0},
        {"similarity_threshold": 1.5},
    ],
)
def test_invalid_engine_settings(kwargs):
    with pytest.raises(ValueError):
        EngineSettings(**kwargs)


def test_env_values_follow_setting_types(monkeypatch, tmp_path):
    monkeypatch.setenv("COPYDEDUP_JUDGE__API_KEY", "123456")
    monkeypatch.setenv("COPYDEDUP_JUDGE__BATCH_DELAY_SECONDS", "2")
    monkeypatch.setenv("COPYDEDUP_LIBRARY__CHECK_LIBRARY", "0")
    monkeypatch.setenv("COPYDEDUP_API__PORT", "9000")
    config = load_config(tmp_path / "absent.yaml")
    assert config.judge.api_key == "123456"
    assert config.judge.batch_delay_seconds == 2.0
    assert config.library.check_library is False
    assert config.api.port == 9000


def test_bad_env_value_rejected(monkeypatch, tmp_path):
    monkeypatch.setenv("COPYDEDUP_ENGINE__NUM_BANDS", "many")
    with pytest.raises(ValueError):
        load_config(tmp_path / "absent.yaml")


def test_unknown_env_setting_ignored(monkeypatch, tmp_path):
    monkeypatch.setenv("COPYDEDUP_ENGINE__COLOR", "blue")
    monkeypatch.setenv("COPYDEDUP_NOSECTION", "x")
    assert load_config(tmp_path / "absent.yaml").engine.num_bands == 16


def test_unknown_file_settings_rejected(tmp_path):
    cfg_file = tmp_path / "cfg.yaml"
    cfg_file.write_text("crawler:\n  max_pages: 5\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(cfg_file)
    cfg_file.write_text("engine:\n  num_bandz: 8\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(cfg_file)
