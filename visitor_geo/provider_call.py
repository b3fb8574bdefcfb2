import asyncio
from datetime import datetime, timezone

import httpx

from visitor_geo.clients.registry import ProviderEntry
from visitor_geo.config import DEFAULT_PROVIDER_TIMEOUT_SECONDS
from visitor_geo.logger import provider_logger
from visitor_geo.models.geo import NO_GEO_DATA_MESSAGE, ProviderOutcome, ProviderStatus, RawLocation


def _error_text(exc: BaseException) -> str:
    return str(exc) or repr(exc)


async def call_provider(
    entry: ProviderEntry,
    ip: str,
    timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS,
) -> ProviderOutcome:
    """Call one provider under its own timeout and classify the result.

    This never raises: success, explicit absence, timeouts and any other error
    all come back as a ProviderOutcome. Cancellation of the calling task is not
    intercepted.
    """
    observed_at = datetime.now(timezone.utc)

    try:
        raw = await asyncio.wait_for(entry.fetch(ip), timeout=timeout_seconds)
    except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
        message = str(exc) or f"Provider call timed out after {timeout_seconds}s"
        provider_logger.info(f"Provider timed out provider={entry.name} ip={ip} error={message}")
        return ProviderOutcome.failure(entry.name, observed_at, ProviderStatus.timeout, message)
    except Exception as exc:
        provider_logger.info(f"Provider call failed provider={entry.name} ip={ip} error={exc!r}")
        return ProviderOutcome.failure(entry.name, observed_at, ProviderStatus.failed, _error_text(exc))

    if not isinstance(raw, RawLocation) or not raw.has_coordinates:
        provider_logger.info(f"Provider returned no location provider={entry.name} ip={ip}")
        return ProviderOutcome.failure(entry.name, observed_at, ProviderStatus.failed, NO_GEO_DATA_MESSAGE)

    provider_logger.debug(
        f"Provider succeeded provider={entry.name} ip={ip} lat={raw.latitude} lon={raw.longitude}"
    )
    return ProviderOutcome.success_from(entry.name, observed_at, raw)
