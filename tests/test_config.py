import pytest

from core.config import BridgeConfig, config_from_dict, load_config


def test_load_config_from_yaml(tmp_path):
    path = tmp_path / "bridge.yaml"
    path.write_text(
        "server:\n"
        "  host: 127.0.0.1\n"
        "  port: 9001\n"
        "client:\n"
        "  url: ws://pi.local:9001\n"
        "logging:\n"
        "  level: debug\n"
        "  debug_modules: hub\n",
        encoding="utf-8",
    )
    cfg = load_config(str(path))

    assert cfg == BridgeConfig(
        host="127.0.0.1", port=9001, url="ws://pi.local:9001",
        log_level="DEBUG", debug_modules=("hub",),
    )


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    cfg = load_config(str(path))
    assert cfg.port == 8080
    assert cfg.url == "ws://localhost:8080"


@pytest.mark.parametrize("data", [
    {"server": {"port": "8080"}},
    {"server": {"port": 70000}},
    {"server": ["port", 1]},
    {"logging": {"level": "LOUD"}},
    ["not", "a", "mapping"],
])
def test_invalid_config_rejected(data):
    with pytest.raises(ValueError):
        config_from_dict(data)


def test_cli_overrides_only_apply_when_given():
    cfg = BridgeConfig(port=9000)
    assert cfg.with_overrides(port=None, host=None) is cfg
    assert cfg.with_overrides(port=1234).port == 1234
