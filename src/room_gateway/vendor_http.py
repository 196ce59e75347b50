from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any

import httpx


class VendorTransportError(Exception):
    pass


class VendorUpstreamError(Exception):
    def __init__(self, *, status_code: int, body: Any, vendor: str = "vendor") -> None:
        super().__init__(f"{vendor} upstream error: {status_code}")
        self.status_code = status_code
        self.body = body
        self.vendor = vendor


class VendorProtocolError(Exception):
    """The vendor answered, but not in the shape we expect."""


@dataclass(frozen=True)
class JSONishResult:
    status_code: int
    body: Any


_TRANSPORT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.ReadTimeout, httpx.NetworkError)


class VendorHTTPClient:
    vendor_name = "vendor"

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        verify: bool = True,
    ) -> None:
        self._transport = transport
        self._verify = verify
        self._client: httpx.AsyncClient | None = None

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _base_url(self) -> str:
        return ""

    def _headers(self) -> dict[str, str]:
        return {}

    def _drop_client(self) -> None:
        if not self._client:
            return
        # Lazily recreated on next request.
        old = self._client
        self._client = None
        try:
            asyncio.get_running_loop().create_task(old.aclose())
        except RuntimeError:
            pass

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client:
            return self._client
        self._client = httpx.AsyncClient(
            base_url=self._base_url(),
            verify=self._verify,
            timeout=httpx.Timeout(10.0, connect=3.0),
            headers=self._headers(),
            transport=self._transport,
        )
        return self._client

    async def request_jsonish(
        self,
        *,
        method: str,
        path: str,
        json_body: Any | None = None,
        retry: bool = False,
        max_attempts: int = 3,
        base_delay_ms: int = 200,
    ) -> JSONishResult:
        client = await self._get_client()
        attempts = max_attempts if retry else 1

        last_transport_error: Exception | None = None
        last_upstream_error: VendorUpstreamError | None = None

        for attempt in range(1, attempts + 1):
            try:
                resp = await client.request(method, path, json=json_body)
            except _TRANSPORT_ERRORS as exc:
                last_transport_error = exc
                if attempt == attempts:
                    raise VendorTransportError(str(exc)) from exc
                await self._sleep_backoff(attempt=attempt, base_delay_ms=base_delay_ms)
                continue
            except (httpx.TransportError, httpx.InvalidURL) as exc:
                # Protocol faults and malformed device addresses are not retried.
                raise VendorTransportError(str(exc) or exc.__class__.__name__) from exc

            body: Any
            content_type = resp.headers.get("content-type", "")
            if "application/json" in content_type:
                try:
                    body = resp.json()
                except ValueError:
                    body = resp.text
            else:
                body = resp.text

            if resp.status_code >= 400:
                err = VendorUpstreamError(status_code=resp.status_code, body=body, vendor=self.vendor_name)
                last_upstream_error = err
                should_retry = retry and (resp.status_code == 429 or 500 <= resp.status_code <= 599)
                if should_retry and attempt < attempts:
                    await self._sleep_backoff(attempt=attempt, base_delay_ms=base_delay_ms)
                    continue
                raise err

            return JSONishResult(status_code=resp.status_code, body=body)

        if last_upstream_error:
            raise last_upstream_error
        if last_transport_error:
            raise VendorTransportError(str(last_transport_error)) from last_transport_error
        raise VendorTransportError("request failed")

    async def _sleep_backoff(self, *, attempt: int, base_delay_ms: int) -> None:
        # Exponential backoff with jitter.
        delay = (base_delay_ms / 1000.0) * (2 ** (attempt - 1))
        delay = delay * (0.5 + random.random())
        await asyncio.sleep(min(delay, 5.0))


def describe_vendor_error(exc: Exception) -> str:
    if isinstance(exc, VendorUpstreamError):
        return f"{exc} ({exc.body})" if exc.body not in (None, "") else str(exc)
    return str(exc) or exc.__class__.__name__
