"""
Module: config/settings.py
Description: Chargement de la configuration (fichier YAML + surcharges par variables d'environnement / .env).
"""
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import load_dotenv

from wallet_gateway.blockchain.errors import ConfigError

DEFAULT_CONFIG_PATH = "config.yml"
DEFAULT_PORT = 8189


@dataclass
class NodeConfig:
    """Paramètres de connexion d'une chaîne (nœud RPC + API de données)."""
    rpc_urls: List[str] = field(default_factory=list)
    data_api_url: str = ""
    data_api_key: str = ""
    timeout: float = 15.0

    @property
    def rpc_url(self) -> str:
        if not self.rpc_urls:
            raise ConfigError("no rpc url configured")
        return self.rpc_urls[0]


class Settings:
    def __init__(
        self,
        chains: List[str],
        server_host: str = "0.0.0.0",
        server_port: int = DEFAULT_PORT,
        request_timeout: Optional[float] = None,
        log_level: str = "INFO",
        log_format: str = "text",
        log_file: Optional[str] = None,
        nodes: Optional[Dict[str, NodeConfig]] = None,
    ):
        self.chains = list(chains)
        self.server_host = server_host
        self.server_port = server_port
        self.request_timeout = request_timeout
        self.log_level = log_level
        self.log_format = log_format
        self.log_file = log_file
        self.nodes = nodes or {}

    def node(self, key: str) -> NodeConfig:
        if key not in self.nodes:
            raise ConfigError(f"missing wallet_node.{key} section")
        return self.nodes[key]

    @classmethod
    def load(cls, path: str = DEFAULT_CONFIG_PATH, environ: Mapping[str, str] = None) -> "Settings":
        load_dotenv()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise ConfigError(f"config file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {path}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping at top level")
        return cls.from_dict(data, environ=os.environ if environ is None else environ)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], environ: Mapping[str, str] = None) -> "Settings":
        environ = environ or {}
        server = data.get("server") or {}
        log = data.get("log") or {}

        chains = data.get("chains") or []
        if environ.get("WALLET_CHAINS"):
            chains = [c.strip() for c in environ["WALLET_CHAINS"].split(",") if c.strip()]
        if not isinstance(chains, list) or not all(isinstance(c, str) for c in chains):
            raise ConfigError("'chains' must be a list of chain names")

        port = environ.get("SERVER_PORT", server.get("port", DEFAULT_PORT))
        try:
            port = int(port)
        except (TypeError, ValueError):
            raise ConfigError(f"invalid server port: {port!r}")
        if not 0 < port < 65536:
            raise ConfigError(f"server port out of range: {port}")

        request_timeout = data.get("request_timeout")
        if request_timeout is not None:
            try:
                request_timeout = float(request_timeout)
            except (TypeError, ValueError):
                raise ConfigError(f"invalid request_timeout: {request_timeout!r}")

        nodes = {}
        for key, raw in (data.get("wallet_node") or {}).items():
            nodes[key] = _parse_node(key, raw or {})
        _apply_node_overrides(nodes, environ)

        return cls(
            chains=chains,
            server_host=str(server.get("host", "0.0.0.0")),
            server_port=port,
            request_timeout=request_timeout,
            log_level=environ.get("LOG_LEVEL", log.get("level", "INFO")),
            log_format=log.get("format", "text"),
            log_file=log.get("file"),
            nodes=nodes,
        )


def _parse_node(key: str, raw: Dict[str, Any]) -> NodeConfig:
    rpcs = raw.get("rpcs") or []
    urls = []
    for entry in rpcs:
        url = entry.get("rpc_url") if isinstance(entry, dict) else entry
        if url:
            urls.append(str(url))
    try:
        timeout = float(raw.get("time_out", 15))
    except (TypeError, ValueError):
        raise ConfigError(f"invalid wallet_node.{key}.time_out: {raw.get('time_out')!r}")
    return NodeConfig(
        rpc_urls=urls,
        data_api_url=raw.get("data_api_url") or "",
        data_api_key=raw.get("data_api_key") or "",
        timeout=timeout,
    )


def _apply_node_overrides(nodes: Dict[str, NodeConfig], environ: Mapping[str, str]):
    # Les secrets (clé d'API) se configurent de préférence via .env
    overrides = {
        "ETH_RPC_URL": ("eth", "rpc_urls"),
        "ETH_DATA_API_URL": ("eth", "data_api_url"),
        "ETH_DATA_API_KEY": ("eth", "data_api_key"),
        "SOL_RPC_URL": ("sol", "rpc_urls"),
    }
    for env_key, (node_key, attr) in overrides.items():
        value = environ.get(env_key)
        if not value:
            continue
        node = nodes.setdefault(node_key, NodeConfig())
        if attr == "rpc_urls":
            node.rpc_urls = [value]
        else:
            setattr(node, attr, value)
