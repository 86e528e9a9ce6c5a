"""Video room provisioning for teleconsultations.

``DailyVideoProvider`` talks to the Daily.co REST API. ``LocalVideoProvider``
is used when no API key is configured: it builds room links under
``VIDEO_BASE_URL`` and signs join tokens with the application key.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional
import logging

import httpx
from jose import jwt

from ..core.config import settings
from ..core.exceptions import DependencyFailure

logger = logging.getLogger(__name__)


@dataclass
class VideoRoom:
    url: str
    room_name: str


class VideoProvider:
    def create_room(self, name: str) -> VideoRoom:
        raise NotImplementedError

    def delete_room(self, name: str) -> None:
        raise NotImplementedError

    def generate_access_token(
        self,
        room_name: str,
        user_id: str,
        role: str,
        user_name: Optional[str] = None,
        expires_in: int = 3600,
    ) -> str:
        raise NotImplementedError

    def close(self) -> None:
        pass


class DailyVideoProvider(VideoProvider):
    """Daily.co rooms over one pooled ``httpx.Client``; call ``close()`` when done."""

    def __init__(
        self,
        api_key: str,
        base_url: str = settings.DAILY_API_URL,
        timeout: float = settings.VIDEO_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"},
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    @staticmethod
    def _payload(response: httpx.Response, *keys: str) -> dict:
        try:
            body = response.json()
            for key in keys:
                if not body[key]:
                    raise KeyError(key)
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Unexpected Daily.co response to {response.request.url.path}: {e!r}")
            raise DependencyFailure("Resposta inválida do serviço de vídeo")
        return body

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"Daily.co {method} {path} timed out: {e}")
            raise DependencyFailure("Tempo esgotado ao contatar o serviço de vídeo")
        except httpx.HTTPError as e:
            logger.error(f"Daily.co {method} {path} failed: {e}")
            raise DependencyFailure("Falha ao contatar o serviço de vídeo")

        if response.is_error:
            logger.error(f"Daily.co {method} {path} returned {response.status_code}: {response.text}")
            raise DependencyFailure(f"Serviço de vídeo respondeu {response.status_code}")
        return response

    def create_room(self, name: str) -> VideoRoom:
        response = self._request("POST", "/rooms", json={
            "name": name,
            "privacy": "private",
            "properties": {
                "enable_chat": True,
                "enable_screenshare": True,
                "enable_knocking": False,
                "enable_prejoin_ui": True,
            },
        })
        room = self._payload(response, "url", "name")
        return VideoRoom(url=room["url"], room_name=room["name"])

    def delete_room(self, name: str) -> None:
        self._request("DELETE", f"/rooms/{name}")

    def generate_access_token(self, room_name, user_id, role, user_name=None, expires_in=3600) -> str:
        # Only doctors and admins own the room
        is_owner = role in ("doctor", "admin")
        response = self._request("POST", "/meeting-tokens", json={
            "properties": {
                "room_name": room_name,
                "user_name": user_name or "Usuário",
                "user_id": str(user_id),
                "exp": int(datetime.now(timezone.utc).timestamp()) + expires_in,
                "is_owner": is_owner,
            },
        })
        return self._payload(response, "token")["token"]


class LocalVideoProvider(VideoProvider):
    def __init__(self, base_url: str = settings.VIDEO_BASE_URL):
        self.base_url = base_url.rstrip("/")

    def create_room(self, name: str) -> VideoRoom:
        return VideoRoom(url=f"{self.base_url}/{name}", room_name=name)

    def delete_room(self, name: str) -> None:
        logger.info(f"Released local video room {name}")

    def generate_access_token(self, room_name, user_id, role, user_name=None, expires_in=3600) -> str:
        now = int(datetime.now(timezone.utc).timestamp())
        return jwt.encode(
            {
                "room_name": room_name,
                "user_id": str(user_id),
                "user_name": user_name or "Usuário",
                "is_owner": role in ("doctor", "admin"),
                "iat": now,
                "exp": now + expires_in,
            },
            settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
        )


@lru_cache(maxsize=None)
def get_video_provider() -> VideoProvider:
    """One provider per process, so the Daily.co connection pool is shared."""
    if settings.DAILY_API_KEY:
        return DailyVideoProvider(settings.DAILY_API_KEY)
    return LocalVideoProvider()


def close_video_provider() -> None:
    if get_video_provider.cache_info().currsize:
        get_video_provider().close()
    get_video_provider.cache_clear()
