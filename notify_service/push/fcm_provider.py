"""Firebase Cloud Messaging (HTTP v1) push provider"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import List, Optional

import httpx
from jose import jwt

from .provider_base import PushProvider
from .models import PushPayload, PushResult, ServiceAccountCredentials

logger = logging.getLogger(__name__)

FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
TOKEN_LIFETIME_SECONDS = 3600
TOKEN_REFRESH_MARGIN_SECONDS = 60


def flatten_data(data: Optional[dict]) -> dict[str, str]:
    """FCM data payloads only carry string values."""
    if not data:
        return {}
    flat = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, dict):
            flat[key] = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        elif isinstance(value, bool):
            flat[key] = "true" if value else "false"
        else:
            flat[key] = str(value)
    return flat


def build_message(token: str, payload: PushPayload) -> dict:
    return {
        "token": token,
        "notification": {"title": payload.title, "body": payload.body},
        "data": flatten_data(payload.data),
        # iOS
        "apns": {
            "payload": {
                "aps": {
                    "alert": {"title": payload.title, "body": payload.body},
                    "sound": "default",
                    "badge": 1,
                },
            },
        },
        # Android
        "android": {
            "priority": "high",
            "notification": {"channel_id": "default", "sound": "default"},
        },
    }


class FcmPushProvider(PushProvider):
    def __init__(
        self,
        credentials: ServiceAccountCredentials,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.credentials = credentials
        self.timeout = timeout
        self._client = client
        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0.0
        self._token_lock = asyncio.Lock()

    @property
    def send_url(self) -> str:
        return FCM_SEND_URL.format(project_id=self.credentials.project_id)

    async def send_multicast(self, tokens: List[str], payload: PushPayload) -> PushResult:
        if not tokens:
            return PushResult()

        try:
            async with self._http() as client:
                access_token = await self._get_access_token(client)
                responses = await asyncio.gather(
                    *(self._send_one(client, access_token, t, payload) for t in tokens),
                    return_exceptions=True,
                )
        except Exception as e:
            logger.error(f"FCM multicast error: {e}")
            return PushResult(success_count=0, failure_count=len(tokens), failed_tokens=list(tokens))

        result = PushResult()
        for token, outcome in zip(tokens, responses):
            if outcome is True:
                result.success_count += 1
            else:
                result.failure_count += 1
                result.failed_tokens.append(token)
                logger.warning(f"FCM send failed for token {token[:12]}...: {outcome}")

        logger.info(f"FCM multicast result: {result.success_count} success, {result.failure_count} failures")
        return result

    async def validate_token(self, token: str) -> bool:
        try:
            async with self._http() as client:
                access_token = await self._get_access_token(client)
                resp = await client.post(
                    self.send_url,
                    headers={"Authorization": f"Bearer {access_token}"},
                    json={
                        "validate_only": True,
                        "message": {"token": token, "notification": {"title": "test", "body": "test"}},
                    },
                )
                return resp.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"FCM token validation failed: {e}")
            return False

    # ------------------------------------------------------------------
    def _http(self):
        if self._client is not None:
            return _Borrowed(self._client)
        return httpx.AsyncClient(timeout=self.timeout)

    async def _send_one(self, client: httpx.AsyncClient, access_token: str, token: str, payload: PushPayload):
        resp = await client.post(
            self.send_url,
            headers={"Authorization": f"Bearer {access_token}"},
            json={"message": build_message(token, payload)},
        )
        if resp.status_code == 200:
            return True
        return f"HTTP {resp.status_code}: {resp.text[:200]}"

    async def _get_access_token(self, client: httpx.AsyncClient) -> str:
        async with self._token_lock:
            now = time.time()
            if self._access_token and now < self._token_expires_at - TOKEN_REFRESH_MARGIN_SECONDS:
                return self._access_token

            assertion = jwt.encode(
                {
                    "iss": self.credentials.client_email,
                    "scope": FCM_SCOPE,
                    "aud": self.credentials.token_uri,
                    "iat": int(now),
                    "exp": int(now) + TOKEN_LIFETIME_SECONDS,
                },
                self.credentials.private_key,
                algorithm="RS256",
            )
            resp = await client.post(
                self.credentials.token_uri,
                data={
                    "grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer",
                    "assertion": assertion,
                },
            )
            resp.raise_for_status()
            body = resp.json()
            self._access_token = body["access_token"]
            self._token_expires_at = now + int(body.get("expires_in", TOKEN_LIFETIME_SECONDS))
            return self._access_token


class _Borrowed:
    """Async context wrapper that leaves an injected client open"""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def __aenter__(self) -> httpx.AsyncClient:
        return self.client

    async def __aexit__(self, *exc) -> None:
        return None
