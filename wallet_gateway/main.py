import sys

import click
import uvicorn
from fastapi import APIRouter, FastAPI, Request
from loguru import logger

from wallet_gateway.blockchain.adapter import OPERATIONS
from wallet_gateway.blockchain.errors import ConfigError, RegistryBuildError
from wallet_gateway.blockchain.manager import AdapterRegistry, build_registry
from wallet_gateway.config.settings import DEFAULT_CONFIG_PATH, Settings
from wallet_gateway.dispatch.dispatcher import ChainDispatcher
from wallet_gateway.dispatch.interceptor import RequestInterceptor
from wallet_gateway.utils.logger import setup_logging

API_PREFIX = "/api/v1"


# ==============================================================================
# Endpoints de l'API
# ==============================================================================

def _make_endpoint(operation: str, request_cls):
    async def endpoint(body: request_cls, http_request: Request):
        return await http_request.app.state.dispatcher.dispatch(operation, body)

    endpoint.__name__ = operation
    return endpoint


def build_router() -> APIRouter:
    """Une route POST par opération wallet, générée depuis la table OPERATIONS."""
    router = APIRouter(prefix=API_PREFIX)
    for operation, entry in OPERATIONS.items():
        router.add_api_route(
            f"/{operation}",
            _make_endpoint(operation, entry.request),
            methods=["POST"],
            response_model=entry.response,
            name=operation,
        )
    return router


def create_app(settings: Settings, registry: AdapterRegistry) -> FastAPI:
    app = FastAPI(title="Wallet Chain Gateway")
    app.state.settings = settings
    app.state.registry = registry
    app.state.dispatcher = ChainDispatcher(registry, RequestInterceptor(settings.request_timeout))
    app.include_router(build_router())

    @app.get("/")
    async def read_root():
        """Endpoint racine pour vérifier que l'API est en ligne."""
        return {"message": "wallet chain gateway", "chains": registry.chains()}

    @app.on_event("shutdown")
    async def shutdown_event():
        """Ferme proprement les clients réseau des adapters."""
        await registry.aclose()
        logger.info("Wallet gateway stopped.")

    return app


# ==============================================================================
# Démarrage
# ==============================================================================

def bootstrap(config_path: str) -> FastAPI:
    settings = Settings.load(config_path)
    setup_logging(settings.log_level, settings.log_format, settings.log_file)
    registry = build_registry(settings)
    return create_app(settings, registry)


@click.command()
@click.option("-c", "--config", "config_path", default=DEFAULT_CONFIG_PATH, show_default=True, help="config path")
def cli(config_path: str):
    """Démarre le service RPC wallet multi-chaînes."""
    try:
        app = bootstrap(config_path)
    except ConfigError as e:
        logger.critical(f"Failed to load config: {e}")
        sys.exit(1)
    except RegistryBuildError as e:
        logger.critical(f"Setup dispatcher failed: {e}")
        sys.exit(1)

    settings: Settings = app.state.settings
    logger.info(f"wallet rpc services start success, port: {settings.server_port}")
    uvicorn.run(app, host=settings.server_host, port=settings.server_port, log_config=None)


if __name__ == "__main__":
    cli()
