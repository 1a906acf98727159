"""
HTTP Probe Adapter

Architectural Intent:
- Infrastructure adapter implementing HealthCheckPort with httpx
- One GET per check; the HealthProber owns polling and deadlines
- Healthy means: status code in the success set and, when a success token
  is configured, the token appears in the response body

Classification:
- connect failures and transport errors -> UNREACHABLE
- connected but no answer in time, wrong status, missing token -> UNHEALTHY
"""

from __future__ import annotations
import logging
from typing import Iterable, Optional

import httpx

from rollgate.domain.ports.health_check_port import HealthCheckPort
from rollgate.domain.value_objects.probe_outcome import ProbeOutcome

logger = logging.getLogger(__name__)

DEFAULT_SUCCESS_TOKEN = "OK"


class HttpProbeAdapter(HealthCheckPort):
    def __init__(
        self,
        success_token: str = DEFAULT_SUCCESS_TOKEN,
        success_statuses: Iterable[int] = (200,),
        verify_tls: bool = True,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.success_token = success_token
        self.success_statuses = frozenset(success_statuses)
        if not self.success_statuses:
            raise ValueError("success_statuses cannot be empty")
        self.verify_tls = verify_tls
        self._client = client

    async def check(self, endpoint: str, timeout: float) -> ProbeOutcome:
        try:
            if self._client is not None:
                response = await self._client.get(endpoint, timeout=timeout)
            else:
                async with httpx.AsyncClient(
                    verify=self.verify_tls,
                    follow_redirects=True,
                    headers={"User-Agent": "rollgate-health-probe"},
                ) as client:
                    response = await client.get(endpoint, timeout=timeout)
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            return ProbeOutcome.unreachable(f"{type(e).__name__}: {e}")
        except httpx.TimeoutException as e:
            return ProbeOutcome.unhealthy(f"no response within {timeout:g}s ({type(e).__name__})")
        except httpx.HTTPError as e:
            return ProbeOutcome.unreachable(f"{type(e).__name__}: {e}")

        return self.evaluate(response)

    def evaluate(self, response: httpx.Response) -> ProbeOutcome:
        if response.status_code not in self.success_statuses:
            return ProbeOutcome.unhealthy(f"HTTP {response.status_code}")
        if self.success_token and self.success_token not in response.text:
            return ProbeOutcome.unhealthy(
                f"HTTP {response.status_code} without {self.success_token!r} in body"
            )
        return ProbeOutcome.healthy(f"HTTP {response.status_code}")
