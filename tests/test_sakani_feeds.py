from __future__ import annotations

import asyncio
import json

import httpx
import pytest
import respx

from adapters.sakani_feeds import SakaniClient
from core.config import FeedConfig
from core.errors import FeedFetchError, LookupFailure, ValidationLookupError

COUNTERS_URL = "https://feeds.test/counters"
SEARCH_URL = "https://feeds.test/search"
VALIDATION_URL = "https://feeds.test/projects"


def _config(**overrides) -> FeedConfig:
    values = dict(
        counters_url=COUNTERS_URL,
        search_url=SEARCH_URL,
        validation_url=VALIDATION_URL,
        validation_rate_per_second=1000.0,
    )
    values.update(overrides)
    return FeedConfig(**values)


def _call(method: str, *args, config: FeedConfig = None):
    async def _run():
        client = SakaniClient(config or _config())
        try:
            return await getattr(client, method)(*args)
        finally:
            await client.close()

    return asyncio.run(_run())


@respx.mock
def test_fetch_counts_parses_counter_feed() -> None:
    respx.get(COUNTERS_URL).mock(
        return_value=httpx.Response(200, json={"buy_units_count": {"1": 3, "2": 0}})
    )

    readings = _call("fetch_counts")

    assert {(r.resource_id, r.count) for r in readings} == {(1, 3), (2, 0)}


@respx.mock
def test_fetch_counts_http_error_is_feed_failure() -> None:
    respx.get(COUNTERS_URL).mock(return_value=httpx.Response(503))

    with pytest.raises(FeedFetchError) as excinfo:
        _call("fetch_counts")
    assert excinfo.value.feed == "counters"
    assert "503" in str(excinfo.value)


@respx.mock
def test_fetch_counts_bad_structure_is_feed_failure() -> None:
    respx.get(COUNTERS_URL).mock(return_value=httpx.Response(200, json={"unexpected": True}))

    with pytest.raises(FeedFetchError):
        _call("fetch_counts")


@respx.mock
def test_fetch_metadata_non_json_is_feed_failure() -> None:
    respx.get(SEARCH_URL).mock(return_value=httpx.Response(200, text="<html>maintenance</html>"))

    with pytest.raises(FeedFetchError):
        _call("fetch_metadata")


@respx.mock
def test_lookup_returns_fresh_metadata() -> None:
    route = respx.get(f"{VALIDATION_URL}/42").mock(
        return_value=httpx.Response(
            200,
            json={
                "data": {
                    "attributes": {
                        "name": "Khuzam",
                        "bookable": True,
                        "units_statistic_data": {"available_units_count": 3},
                    }
                }
            },
        )
    )

    record = _call("lookup", 42)

    assert record.resource_id == 42
    assert record.name == "Khuzam"
    assert record.available_units == 3
    assert route.calls.last.request.url.params["include"] == "amenities"


@pytest.mark.parametrize(
    ("response", "kind"),
    [
        (httpx.Response(404), LookupFailure.NOT_FOUND),
        (httpx.Response(500), LookupFailure.NETWORK),
        (httpx.Response(200, text="not json"), LookupFailure.MALFORMED),
        (httpx.Response(200, json={"data": []}), LookupFailure.MALFORMED),
    ],
)
def test_lookup_failures_are_classified(response, kind) -> None:
    with respx.mock:
        respx.get(f"{VALIDATION_URL}/7").mock(return_value=response)
        with pytest.raises(ValidationLookupError) as excinfo:
            _call("lookup", 7)

    assert excinfo.value.kind is kind
    assert excinfo.value.resource_id == 7


@respx.mock
def test_lookup_timeout_is_network_failure() -> None:
    respx.get(f"{VALIDATION_URL}/7").mock(side_effect=httpx.ReadTimeout("slow"))

    with pytest.raises(ValidationLookupError) as excinfo:
        _call("lookup", 7)
    assert excinfo.value.kind is LookupFailure.NETWORK


@respx.mock
def test_raw_payloads_are_dumped_when_configured(tmp_path) -> None:
    respx.get(COUNTERS_URL).mock(return_value=httpx.Response(200, json={"buy_units_count": {"5": 1}}))

    _call("fetch_counts", config=_config(raw_dump_dir=str(tmp_path)))

    dumps = list(tmp_path.glob("*_counters_api_raw_response.json"))
    assert len(dumps) == 1
    assert json.loads(dumps[0].read_text(encoding="utf-8")) == {"buy_units_count": {"5": 1}}


@respx.mock
def test_failed_validation_is_dumped_when_configured(tmp_path) -> None:
    respx.get(f"{VALIDATION_URL}/7").mock(return_value=httpx.Response(404))

    with pytest.raises(ValidationLookupError):
        _call("lookup", 7, config=_config(raw_dump_dir=str(tmp_path)))

    dumps = list(tmp_path.glob("*_validation_error_7.json"))
    assert len(dumps) == 1
    assert json.loads(dumps[0].read_text(encoding="utf-8"))["kind"] == "not_found"
