import tomllib

import pytest

from tinylsm import config as config_mod
from tinylsm.config import TomlConfig, get_instance


@pytest.fixture(autouse=True)
def _fresh_instance(monkeypatch):
    monkeypatch.setattr(config_mod, "_instance", None)


def test_defaults_match_documented_constants():
    cfg = TomlConfig()
    assert cfg.lsm_tol_mem_size_limit == 67108864
    assert cfg.lsm_per_mem_size_limit == 4194304
    assert cfg.lsm_block_size == 32768
    assert cfg.lsm_sst_level_ratio == 4
    assert cfg.lsm_block_cache_capacity == 1024
    assert cfg.lsm_block_cache_k == 8
    assert cfg.redis_expire_header == "REDIS_EXPIRE_"
    assert cfg.redis_field_separator == "$"
    assert cfg.redis_list_separator == "#"
    assert cfg.redis_sorted_set_prefix == "REDIS_SORTED_SET_"
    assert cfg.redis_sorted_set_score_len == 32
    assert cfg.bloom_filter_expected_size == 65536
    assert cfg.bloom_filter_expected_error_rate == 0.1


def test_save_and_load_round_trip(tmp_path):
    original = TomlConfig().replace(
        lsm_block_size=256, redis_field_separator="|", bloom_filter_expected_error_rate=0.01
    )
    path = tmp_path / "cfg.toml"
    original.save(path)
    assert TomlConfig.from_file(path) == original


def test_saved_file_layout(tmp_path):
    path = tmp_path / "cfg.toml"
    TomlConfig().save(path)
    doc = tomllib.loads(path.read_text(encoding="utf-8"))
    assert doc["lsm"]["core"]["LSM_BLOCK_SIZE"] == 32768
    assert doc["lsm"]["cache"]["LSM_BLOCK_CACHE_K"] == 8
    assert doc["redis"]["REDIS_SET_PREFIX"] == "REDIS_SET_"
    assert doc["bloom_filter"]["BLOOM_FILTER_EXPECTED_SIZE"] == 65536


def test_separator_uses_first_character(tmp_path):
    doc = TomlConfig().to_dict()
    doc["redis"]["REDIS_LIST_SEPARATOR"] = "#!"
    path = tmp_path / "cfg.toml"
    path.write_text(config_mod.tomli_w.dumps(doc), encoding="utf-8")
    assert TomlConfig.from_file(path).redis_list_separator == "#"


def test_missing_key_raises(tmp_path):
    doc = TomlConfig().to_dict()
    del doc["lsm"]["core"]["LSM_BLOCK_SIZE"]
    path = tmp_path / "cfg.toml"
    path.write_text(config_mod.tomli_w.dumps(doc), encoding="utf-8")
    with pytest.raises(ValueError, match="LSM_BLOCK_SIZE"):
        TomlConfig.from_file(path)


def test_missing_table_raises(tmp_path):
    doc = TomlConfig().to_dict()
    del doc["bloom_filter"]
    path = tmp_path / "cfg.toml"
    path.write_text(config_mod.tomli_w.dumps(doc), encoding="utf-8")
    with pytest.raises(ValueError, match="bloom_filter"):
        TomlConfig.from_file(path)


def test_wrong_type_raises(tmp_path):
    doc = TomlConfig().to_dict()
    doc["bloom_filter"]["BLOOM_FILTER_EXPECTED_ERROR_RATE"] = 1
    path = tmp_path / "cfg.toml"
    path.write_text(config_mod.tomli_w.dumps(doc), encoding="utf-8")
    with pytest.raises(ValueError):
        TomlConfig.from_file(path)


def test_empty_separator_raises(tmp_path):
    doc = TomlConfig().to_dict()
    doc["redis"]["REDIS_FIELD_SEPARATOR"] = ""
    path = tmp_path / "cfg.toml"
    path.write_text(config_mod.tomli_w.dumps(doc), encoding="utf-8")
    with pytest.raises(ValueError):
        TomlConfig.from_file(path)


def test_invalid_toml_raises(tmp_path):
    path = tmp_path / "cfg.toml"
    path.write_text("this is [ not toml", encoding="utf-8")
    with pytest.raises(ValueError):
        TomlConfig.from_file(path)


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        TomlConfig.from_file(tmp_path / "absent.toml")


def test_get_instance_loads_file_and_is_cached(tmp_path):
    custom = TomlConfig().replace(lsm_sst_level_ratio=10)
    path = tmp_path / "cfg.toml"
    custom.save(path)
    first = get_instance(path)
    assert first == custom
    assert get_instance(tmp_path / "other.toml") is first


def test_get_instance_missing_path_writes_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = get_instance(tmp_path / "absent.toml")
    assert cfg == TomlConfig()
    written = tmp_path / "config.toml"
    assert TomlConfig.from_file(written) == TomlConfig()


def test_get_instance_corrupt_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "cfg.toml"
    path.write_text("[lsm]\n", encoding="utf-8")
    assert get_instance(path) == TomlConfig()
    assert path.read_text(encoding="utf-8") == "[lsm]\n"