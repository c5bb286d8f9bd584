"""
Cliente HTTP del backend de HomeFit.

Una sesión aiohttp por sesión de navegación: el cookie jar propio
cumple el rol de `withCredentials` (la cookie de sesión del login
viaja en todas las llamadas siguientes).
"""

import asyncio
from typing import Any, Optional

import aiohttp
import structlog
from pydantic import ValidationError

from homefit.config import get_settings

logger = structlog.get_logger()


class ApiError(Exception):
    """Respuesta no-2xx del backend."""

    def __init__(self, status: int, message: str, payload: Any = None):
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message
        self.payload = payload


# Errores que las llamadas "silenciosas" capturan y degradan. Un payload
# que no valida contra los modelos cuenta como respuesta fallida.
REQUEST_ERRORS = (ApiError, aiohttp.ClientError, asyncio.TimeoutError, ValidationError)


def error_message(error: Exception, default: str) -> str:
    """Mensaje apto para mostrar al usuario a partir de un error de request."""
    if isinstance(error, ApiError) and error.message:
        return error.message
    return default


class HomeFitClient:
    """Wrapper de aiohttp con métodos de utilidad para la API REST."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        settings = get_settings()
        origin = (base_url or settings.homefit_api_url).rstrip("/")
        self.base_url = f"{origin}/api"
        self._timeout = aiohttp.ClientTimeout(
            total=timeout or settings.request_timeout_seconds
        )
        self._session = session

    @property
    def session(self) -> aiohttp.ClientSession:
        """Sesión aiohttp (se crea lazy dentro del event loop)."""
        if self._session is None:
            # unsafe=True para aceptar cookies de hosts por IP (localhost)
            self._session = aiohttp.ClientSession(
                cookie_jar=aiohttp.CookieJar(unsafe=True),
                timeout=self._timeout,
            )
        elif self._session.closed:
            raise RuntimeError("HomeFitClient cerrado")
        return self._session

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Libera la sesión HTTP."""
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Any = None,
        data: Any = None,
        headers: Optional[dict] = None,
    ) -> Any:
        """
        Ejecuta un request contra /api.

        Args:
            method: Verbo HTTP
            path: Path relativo a /api (ej: "/user/session")
            params: Query string
            json: Body JSON
            data: Body form/multipart (aiohttp.FormData)
            headers: Headers extra

        Returns:
            El JSON decodificado, o None si el body está vacío

        Raises:
            ApiError: Si el backend responde con status >= 400
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        async with self.session.request(
            method,
            url,
            params=params,
            json=json,
            data=data,
            headers=headers,
        ) as response:
            payload = await self._read_payload(response)

            if response.status >= 400:
                message = self._extract_message(payload) or response.reason or "Request failed"
                logger.debug(
                    "Respuesta de error del backend",
                    method=method,
                    path=path,
                    status=response.status,
                    error=message,
                )
                raise ApiError(response.status, message, payload)

            return payload

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)

    @staticmethod
    async def _read_payload(response: aiohttp.ClientResponse) -> Any:
        body = await response.text()
        if not body.strip():
            return None
        try:
            return await response.json(content_type=None)
        except ValueError:
            return body

    @staticmethod
    def _extract_message(payload: Any) -> Optional[str]:
        if isinstance(payload, dict):
            return payload.get("error") or payload.get("message")
        if isinstance(payload, str):
            return payload.strip()[:200] or None
        return None
