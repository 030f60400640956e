import logging
from typing import Any, Dict, Optional

import httpx

from ..interface import ProcessorError, StepProcessor
from ...config import settings

logger = logging.getLogger(__name__)


class HttpStepProcessor(StepProcessor):
    def __init__(
        self,
        base_url: str = settings.PROCESSOR_BASE_URL,
        api_key: Optional[str] = settings.PROCESSOR_API_KEY,
        path: str = settings.PROCESSOR_PATH,
        timeout: float = settings.PROCESSOR_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self.path = path
        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def process(self, request: Dict[str, Any]) -> Any:
        # Transport errors surface as ProcessorError; the engine turns them
        # into a failed execution result.
        try:
            response = await self.client.post(self.path, json=request)
        except httpx.HTTPError as e:
            raise ProcessorError(f"Step processor unreachable: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            logger.error(f"Step processor answered {response.status_code} with a non-JSON body")
            raise ProcessorError(f"Step processor returned HTTP {response.status_code}") from e

        # The processor reports flow failures as JSON error bodies; those are
        # results, not transport errors.
        if response.is_error and not isinstance(body, dict):
            raise ProcessorError(f"Step processor returned HTTP {response.status_code}")
        if response.is_error:
            logger.warning(f"Step processor answered {response.status_code}: {body.get('error')}")
        return body

    async def aclose(self):
        await self.client.aclose()
