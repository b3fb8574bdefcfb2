import time

import pytest

from visitor_geo.models.geo import ProviderStatus
from visitor_geo.resolver import GeoResolver, build_clusters, cluster_key, is_resolvable_ip, make_map_link
from tests.common import FakeProvider, located, make_registry


@pytest.mark.asyncio
@pytest.mark.parametrize("ip", ["", "unknown", "127.0.0.1", "::1"])
async def test_non_resolvable_ip_makes_no_provider_calls(ip: str) -> None:
    provider = located(37.5, -122.3)
    resolver = GeoResolver(make_registry({"A": provider}))

    assert await resolver.resolve(ip) is None
    assert provider.calls == []


def test_is_resolvable_ip() -> None:
    assert is_resolvable_ip("73.222.64.204")
    assert is_resolvable_ip("2001:4860:4860::8888")
    assert not is_resolvable_ip(None)
    assert not is_resolvable_ip("unknown")


@pytest.mark.asyncio
async def test_end_to_end_two_agree_one_times_out() -> None:
    registry = make_registry(
        {
            "A": located(37.5, -122.3, city="San Mateo", country="United States"),
            "B": located(37.5, -122.3, region="California"),
            "C": FakeProvider(delay=1.0),
        }
    )
    resolver = GeoResolver(registry, timeout_seconds=0.1)

    resolution = await resolver.resolve("73.222.64.204")

    assert resolution is not None
    assert resolution.ip == "73.222.64.204"
    assert len(resolution.clusters) == 1
    cluster = resolution.clusters[0]
    assert cluster.contributing_providers == ["A", "B"]
    assert cluster.city == "San Mateo"
    assert cluster.region == "California"
    assert cluster.map_link == "https://www.google.com/maps/search/?api=1&query=37.5,-122.3"
    assert [o.provider for o in resolution.provider_outcomes] == ["A", "B", "C"]
    assert [o.status for o in resolution.provider_outcomes] == [
        ProviderStatus.success,
        ProviderStatus.success,
        ProviderStatus.timeout,
    ]


@pytest.mark.asyncio
async def test_rounding_merges_close_coordinates_and_separates_far_ones() -> None:
    registry = make_registry(
        {
            "A": located(37.774, -122.419),
            "B": located(37.7741, -122.4199, city="San Francisco"),
            "C": located(40.71, -74.01, city="New York"),
        }
    )

    resolution = await GeoResolver(registry).resolve("8.8.8.8")

    assert resolution is not None
    assert [c.contributing_providers for c in resolution.clusters] == [["A", "B"], ["C"]]
    merged = resolution.clusters[0]
    # Reported coordinates are the first contributor's, un-rounded.
    assert (merged.latitude, merged.longitude) == (37.774, -122.419)
    assert merged.city == "San Francisco"
    assert resolution.clusters[1].city == "New York"


@pytest.mark.asyncio
async def test_cluster_order_ignores_completion_order() -> None:
    def build(delays: dict[str, float]) -> GeoResolver:
        return GeoResolver(
            make_registry(
                {
                    "A": located(10.0, 10.0, delay=delays["A"]),
                    "B": located(20.0, 20.0, delay=delays["B"]),
                    "C": located(20.001, 20.001, delay=delays["C"]),
                    "D": located(30.0, 30.0, delay=delays["D"]),
                }
            )
        )

    fast_first = await build({"A": 0.0, "B": 0.01, "C": 0.02, "D": 0.03}).resolve("8.8.8.8")
    slow_first = await build({"A": 0.03, "B": 0.02, "C": 0.01, "D": 0.0}).resolve("8.8.8.8")

    assert fast_first is not None and slow_first is not None
    expected = [["B", "C"], ["A"], ["D"]]
    assert [c.contributing_providers for c in fast_first.clusters] == expected
    assert [c.contributing_providers for c in slow_first.clusters] == expected
    assert [c.model_dump() for c in fast_first.clusters] == [c.model_dump() for c in slow_first.clusters]
    assert [o.provider for o in slow_first.provider_outcomes] == ["A", "B", "C", "D"]


@pytest.mark.asyncio
async def test_all_providers_failed_is_a_result_not_an_error() -> None:
    registry = make_registry(
        {
            "A": FakeProvider(None),
            "B": FakeProvider(error=ConnectionError("refused")),
            "C": FakeProvider(None),
        }
    )

    resolution = await GeoResolver(registry).resolve("8.8.8.8")

    assert resolution is not None
    assert resolution.clusters == []
    assert resolution.all_providers_failed
    assert len(resolution.provider_outcomes) == 3
    assert all(o.status is ProviderStatus.failed for o in resolution.provider_outcomes)
    assert resolution.isp is None


@pytest.mark.asyncio
async def test_isp_and_organization_come_from_first_non_empty_provider_each() -> None:
    registry = make_registry(
        {
            "A": FakeProvider(None),
            "B": located(1.0, 1.0, organization="Org B"),
            "C": located(2.0, 2.0, isp="ISP C", organization="Org C"),
            "D": located(3.0, 3.0, isp="ISP D"),
        }
    )

    resolution = await GeoResolver(registry).resolve("8.8.8.8")

    assert resolution is not None
    assert resolution.isp == "ISP C"
    assert resolution.organization == "Org B"


@pytest.mark.asyncio
async def test_providers_run_concurrently() -> None:
    registry = make_registry({name: FakeProvider(delay=0.2) for name in "ABCDE"})

    started = time.monotonic()
    resolution = await GeoResolver(registry).resolve("8.8.8.8")
    elapsed = time.monotonic() - started

    assert resolution is not None
    assert len(resolution.provider_outcomes) == 5
    assert elapsed < 0.6


@pytest.mark.asyncio
async def test_every_provider_is_called_even_after_a_success() -> None:
    providers = {"A": located(1.0, 1.0), "B": located(1.0, 1.0), "C": FakeProvider(None)}

    await GeoResolver(make_registry(providers)).resolve("8.8.8.8")

    assert all(provider.calls == ["8.8.8.8"] for provider in providers.values())


@pytest.mark.asyncio
async def test_internal_fault_returns_none(monkeypatch: pytest.MonkeyPatch) -> None:
    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr("visitor_geo.resolver.build_clusters", explode)

    assert await GeoResolver(make_registry({"A": located(1.0, 1.0)})).resolve("8.8.8.8") is None


def test_build_clusters_empty() -> None:
    assert build_clusters([]) == []


def test_make_map_link_uses_unrounded_coordinates() -> None:
    assert make_map_link(37.77412, -122.41994) == (
        "https://www.google.com/maps/search/?api=1&query=37.77412,-122.41994"
    )


def test_make_map_link_writes_whole_degrees_without_decimal_point() -> None:
    assert make_map_link(37.0, -122.0) == "https://www.google.com/maps/search/?api=1&query=37,-122"
    assert make_map_link(0.0, 12.5) == "https://www.google.com/maps/search/?api=1&query=0,12.5"


@pytest.mark.parametrize(
    ("latitude", "longitude", "expected"),
    [
        (37.125, -122.3, (37.13, -122.3)),
        (-0.125, 0.125, (-0.12, 0.13)),
        (37.774, -122.419, (37.77, -122.42)),
    ],
)
def test_cluster_key_rounds_ties_up(latitude: float, longitude: float, expected: tuple[float, float]) -> None:
    assert cluster_key(latitude, longitude) == expected


@pytest.mark.asyncio
async def test_half_way_coordinates_merge_with_rounded_neighbour() -> None:
    registry = make_registry({"A": located(37.125, -122.3), "B": located(37.13, -122.3)})

    resolution = await GeoResolver(registry).resolve("8.8.8.8")

    assert resolution is not None
    assert [c.contributing_providers for c in resolution.clusters] == [["A", "B"]]
    assert resolution.clusters[0].latitude == 37.125
