from collections.abc import Awaitable, Callable, Sequence
from typing import NamedTuple

from visitor_geo.clients.abstractapi_client import AbstractApi
from visitor_geo.clients.base import BaseGeoProvider
from visitor_geo.clients.freeipapi_client import FreeIpApi
from visitor_geo.clients.ip_api_com_client import IpApiCom
from visitor_geo.clients.ipgeolocation_io_client import IpGeolocationIo
from visitor_geo.clients.ipinfo_client import IpInfo
from visitor_geo.clients.ipstack_client import IpStack
from visitor_geo.clients.ipwho_is_client import IpWhoIs
from visitor_geo.config import Settings
from visitor_geo.models.geo import RawLocation

ProviderFetch = Callable[[str], Awaitable[RawLocation | None]]


class ProviderEntry(NamedTuple):
    """One registered provider: a stable display name and its normalizing lookup."""

    name: str
    fetch: ProviderFetch


ProviderRegistry = Sequence[ProviderEntry]


def build_default_providers(settings: Settings) -> list[BaseGeoProvider]:
    """Instantiate every provider adapter, in registry order.

    The order is observable: it decides tie-breaks between clusters and which
    provider's city/ISP wins. Append new providers at the end.
    """
    timeout = settings.provider_timeout_seconds
    return [
        IpApiCom(timeout_seconds=timeout),
        IpWhoIs(timeout_seconds=timeout),
        FreeIpApi(timeout_seconds=timeout),
        IpInfo(timeout_seconds=timeout),
        IpGeolocationIo(settings.ipgeolocation_key, timeout_seconds=timeout),
        AbstractApi(settings.abstractapi_key, timeout_seconds=timeout),
        IpStack(settings.ipstack_key, timeout_seconds=timeout),
    ]


def registry_from_providers(providers: Sequence[BaseGeoProvider]) -> tuple[ProviderEntry, ...]:
    names = [provider.name for provider in providers]
    if len(set(names)) != len(names):
        raise ValueError(f"Provider names must be unique, got {names}")
    return tuple(ProviderEntry(provider.name, provider.lookup_ip) for provider in providers)


def build_default_registry(settings: Settings) -> tuple[ProviderEntry, ...]:
    return registry_from_providers(build_default_providers(settings))
