import pytest
import yaml

from star_script.core.config import Config


def test_defaults_without_file():
    config = Config()
    assert config.get('runtime.op_limit') == 1000000
    assert config.get('runtime.series_length') == 200
    assert config.get('app.name') == 'Star Script'
    assert config.get('conformance.report_path') == 'parser-diff.json'


def test_missing_file_is_not_created(tmp_path):
    path = tmp_path / "missing.yaml"
    config = Config(str(path))
    assert config.get('strategy.default_qty') == 1
    assert not path.exists()


def test_file_is_merged_over_defaults(tmp_path):
    path = tmp_path / "star.yaml"
    path.write_text("runtime:\n  op_limit: 50\nstrategy:\n  commission_percent: 0.002\n")
    config = Config(str(path))
    assert config.get('runtime.op_limit') == 50
    assert config.get('runtime.series_length') == 200
    assert config.get('strategy.commission_percent') == 0.002
    assert config.get('strategy.default_qty') == 1


def test_get_default_for_missing_keys():
    config = Config()
    assert config.get('nope.nothing', 'fallback') == 'fallback'
    assert config.get('runtime.op_limit.deeper', 7) == 7
    assert config.get('app.log_file') is None


def test_set_and_save_round_trip(tmp_path):
    path = tmp_path / "nested" / "star.yaml"
    config = Config(str(path))
    config.set('runtime.op_limit', 123)
    config.set('custom.section.value', 'x')
    config.save()

    reloaded = Config(str(path))
    assert reloaded.get('runtime.op_limit') == 123
    assert reloaded.get('custom.section.value') == 'x'


def test_save_without_path_fails():
    with pytest.raises(ValueError):
        Config().save()


def test_malformed_yaml_propagates(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("runtime: [1, 2\n")
    with pytest.raises(yaml.YAMLError):
        Config(str(path))


def test_as_dict_is_a_copy():
    config = Config()
    data = config.as_dict()
    data['runtime']['op_limit'] = 1
    assert config.get('runtime.op_limit') == 1000000
