from functools import wraps
from typing import Any, Awaitable, Callable

from cachetools import TTLCache


class BlockchainCache:
    def __init__(self, maxsize: int = 1000, ttl: int = 60):
        """
        Cache manager pour les appels blockchain.

        Args:
            maxsize: Nombre maximum d'éléments dans le cache
            ttl: Temps de vie des éléments en secondes
        """
        # Accédé uniquement depuis la boucle asyncio, pas de verrou nécessaire
        self.cache = TTLCache(maxsize=maxsize, ttl=ttl)

    async def get_or_fetch(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        if key in self.cache:
            return self.cache[key]
        result = await fetch()
        # None (bloc ou page introuvable) n'est pas mis en cache
        if result is not None:
            self.cache[key] = result
        return result

    def cache_rpc_call(self, func):
        """Décorateur pour mettre en cache les appels RPC."""
        @wraps(func)
        async def wrapper(*args, **kwargs):
            key = self._generate_cache_key(func.__name__, args, kwargs)
            return await self.get_or_fetch(key, lambda: func(*args, **kwargs))

        return wrapper

    def _generate_cache_key(self, func_name: str, args: tuple, kwargs: dict) -> str:
        return f"{func_name}_{str(args)}_{str(sorted(kwargs.items()))}"
