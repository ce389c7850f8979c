import sys

import pytest
from click.testing import CliRunner
from loguru import logger

from wallet_gateway import main


@pytest.fixture(autouse=True)
def restore_logging(monkeypatch):
    for key in ("WALLET_CHAINS", "SERVER_PORT", "LOG_LEVEL", "ETH_RPC_URL", "SOL_RPC_URL"):
        monkeypatch.delenv(key, raising=False)
    yield
    # setup_logging remplace les handlers loguru
    logger.remove()
    logger.add(sys.stderr)


def _write_config(tmp_path, body: str) -> str:
    path = tmp_path / "config.yml"
    path.write_text(body)
    return str(path)


def test_missing_config_exits_with_error(tmp_path):
    result = CliRunner().invoke(main.cli, ["-c", str(tmp_path / "absent.yml")])

    assert result.exit_code == 1


def test_registry_failure_exits_with_error(tmp_path, monkeypatch):
    served = []
    monkeypatch.setattr(main.uvicorn, "run", lambda *args, **kwargs: served.append(kwargs))
    # ethereum activé sans section wallet_node.eth
    path = _write_config(tmp_path, "chains: [ethereum]\n")

    result = CliRunner().invoke(main.cli, ["--config", path])

    assert result.exit_code == 1
    assert served == []


def test_starts_server_with_configured_port(tmp_path, monkeypatch):
    served = []
    monkeypatch.setattr(main.uvicorn, "run", lambda app, **kwargs: served.append((app, kwargs)))
    path = _write_config(
        tmp_path,
        "chains: [solana]\n"
        "server: {host: 127.0.0.1, port: 8300}\n"
        "wallet_node:\n"
        "  sol:\n"
        "    rpcs:\n"
        "      - rpc_url: http://127.0.0.1:8899\n",
    )

    result = CliRunner().invoke(main.cli, ["-c", path])

    assert result.exit_code == 0
    app, kwargs = served[0]
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["port"] == 8300
    assert app.state.registry.chains() == ["solana"]
