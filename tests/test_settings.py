import pytest

from wallet_gateway.blockchain.errors import ConfigError
from wallet_gateway.config.settings import DEFAULT_PORT, Settings

CONFIG = {
    "chains": ["ethereum", "solana"],
    "server": {"port": 9000},
    "request_timeout": 20,
    "log": {"level": "DEBUG", "format": "json"},
    "wallet_node": {
        "eth": {
            "rpcs": [{"rpc_url": "http://eth-node:8545"}, {"rpc_url": "http://eth-backup:8545"}],
            "data_api_url": "https://api.etherscan.io/api",
            "data_api_key": "from-file",
            "time_out": 10,
        },
        "sol": {"rpcs": [{"rpc_url": "http://sol-node:8899"}]},
    },
}


def test_from_dict():
    settings = Settings.from_dict(CONFIG)

    assert settings.chains == ["ethereum", "solana"]
    assert settings.server_port == 9000
    assert settings.request_timeout == 20.0
    assert settings.log_format == "json"
    eth = settings.node("eth")
    assert eth.rpc_url == "http://eth-node:8545"
    assert eth.timeout == 10.0
    assert settings.node("sol").timeout == 15.0


def test_defaults():
    settings = Settings.from_dict({})

    assert settings.chains == []
    assert settings.server_port == DEFAULT_PORT
    assert settings.request_timeout is None
    assert settings.log_level == "INFO"


def test_environment_overrides():
    environ = {
        "WALLET_CHAINS": "solana, ethereum",
        "SERVER_PORT": "8200",
        "LOG_LEVEL": "WARNING",
        "ETH_DATA_API_KEY": "secret",
        "SOL_RPC_URL": "http://private-sol:8899",
    }

    settings = Settings.from_dict(CONFIG, environ=environ)

    assert settings.chains == ["solana", "ethereum"]
    assert settings.server_port == 8200
    assert settings.log_level == "WARNING"
    assert settings.node("eth").data_api_key == "secret"
    assert settings.node("sol").rpc_urls == ["http://private-sol:8899"]


def test_override_creates_missing_node():
    settings = Settings.from_dict({"chains": ["ethereum"]}, environ={"ETH_RPC_URL": "http://localhost:8545"})

    assert settings.node("eth").rpc_url == "http://localhost:8545"


@pytest.mark.parametrize("data", [
    {"server": {"port": 0}},
    {"server": {"port": 70000}},
    {"server": {"port": "http"}},
    {"chains": "ethereum"},
    {"request_timeout": "soon"},
    {"wallet_node": {"eth": {"time_out": "never"}}},
])
def test_invalid_values(data):
    with pytest.raises(ConfigError):
        Settings.from_dict(data)


def test_missing_node_section():
    settings = Settings.from_dict({"chains": ["ethereum"]})

    with pytest.raises(ConfigError):
        settings.node("eth")


def test_node_without_rpc_url():
    settings = Settings.from_dict({"wallet_node": {"sol": {"rpcs": []}}})

    with pytest.raises(ConfigError):
        settings.node("sol").rpc_url


def test_load_yaml_file(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text(
        "chains:\n"
        "  - ethereum\n"
        "server:\n"
        "  port: 8190\n"
        "wallet_node:\n"
        "  eth:\n"
        "    rpcs:\n"
        "      - rpc_url: http://eth-node:8545\n"
    )

    settings = Settings.load(str(path), environ={})

    assert settings.chains == ["ethereum"]
    assert settings.server_port == 8190
    assert settings.node("eth").rpc_url == "http://eth-node:8545"


def test_load_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        Settings.load(str(tmp_path / "absent.yml"), environ={})


@pytest.mark.parametrize("content", ["chains: [ethereum\n", "- ethereum\n- solana\n"])
def test_load_malformed_file(tmp_path, content):
    path = tmp_path / "config.yml"
    path.write_text(content)

    with pytest.raises(ConfigError):
        Settings.load(str(path), environ={})
