from __future__ import annotations

import httpx
import pytest

from riksdagskollen.config import RiksdagSettings
from riksdagskollen.riksdag import (
    IndividualVote,
    RiksdagApiError,
    RiksdagClient,
    RollupVote,
    member_to_unit,
)

BASE = "https://data.example.se"


def _person(member_id: str, first: str, last: str, party: str) -> dict:
    return {"intressent_id": member_id, "tilltalsnamn": first, "efternamn": last, "parti": party}


def _client(handler, fast_sleep, **settings) -> tuple[RiksdagClient, httpx.AsyncClient]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RiksdagClient(RiksdagSettings(base_url=BASE, **settings), http, sleep=fast_sleep), http


@pytest.mark.asyncio
async def test_load_units_sorts_by_party_then_surname(fast_sleep) -> None:
    people = [
        _person("3", "Lars", "Öberg", "s"),
        _person("1", "Anna", "Svensson", "M"),
        _person("2", "Bo", "andersson", "S"),
        _person("4", "Eva", "Berg", "M"),
        _person("1", "Anna", "Svensson", "M"),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/personlista/"
        assert request.url.params["utformat"] == "json"
        assert request.url.params["rdlstatus"] == "tjanst"
        return httpx.Response(200, json={"personlista": {"@hits": "5", "person": people}})

    client, http = _client(handler, fast_sleep)
    async with http:
        units = await client.load_units(limit=10)

    assert [unit.id for unit in units] == ["4", "1", "2", "3"]
    assert units[0].display_name == "Eva Berg"
    assert units[0].party_code == "M"


@pytest.mark.asyncio
async def test_load_units_truncates_to_limit(fast_sleep) -> None:
    people = [_person(str(i), "N", f"Namn{i:02d}", "C") for i in range(8)]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"personlista": {"@hits": "8", "person": people}})

    client, http = _client(handler, fast_sleep)
    async with http:
        units = await client.load_units(limit=3)
    assert [unit.id for unit in units] == ["0", "1", "2"]


@pytest.mark.asyncio
async def test_load_units_accepts_single_object(fast_sleep) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"personlista": {"@hits": "1", "person": _person("9", "Ida", "Ek", "V")}}
        )

    client, http = _client(handler, fast_sleep)
    async with http:
        units = await client.load_units(limit=5)
    assert [unit.display_name for unit in units] == ["Ida Ek"]


@pytest.mark.asyncio
async def test_load_units_follows_pages(fast_sleep) -> None:
    pages = {
        "1": [_person("1", "A", "Ahl", "L"), _person("2", "B", "Bohm", "L")],
        "2": [_person("3", "C", "Carl", "L")],
    }
    seen_pages: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        page = request.url.params["p"]
        seen_pages.append(page)
        return httpx.Response(200, json={"personlista": {"@hits": "3", "person": pages.get(page, [])}})

    client, http = _client(handler, fast_sleep, page_delay=0.25)
    async with http:
        units = await client.load_units(limit=10)
    assert seen_pages == ["1", "2"]
    assert len(units) == 3
    assert fast_sleep.calls == [0.25]


@pytest.mark.asyncio
async def test_api_error_is_raised(fast_sleep) -> None:
    client, http = _client(lambda request: httpx.Response(502), fast_sleep)
    async with http:
        with pytest.raises(RiksdagApiError, match="HTTP 502"):
            await client.load_units(limit=5)


@pytest.mark.asyncio
async def test_invalid_json_is_api_error(fast_sleep) -> None:
    client, http = _client(lambda request: httpx.Response(200, text="<html>"), fast_sleep)
    async with http:
        with pytest.raises(RiksdagApiError, match="invalid JSON"):
            await client.fetch_speeches("m1")


@pytest.mark.asyncio
async def test_fetch_speeches_cleans_text(fast_sleep) -> None:
    rows = [
        {
            "anforande_id": "a1",
            "intressent_id": "m1",
            "dok_id": "H901",
            "avsnittsrubrik": "Budget",
            "datum": "2024-05-01",
            "anforande_text": "<p>Herr talman!</p>  <p>Jag yrkar bifall.</p>",
        },
        {"anforande_id": "a2", "anforande_text": ""},
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["iid"] == "m1"
        assert request.url.params["sortorder"] == "desc"
        return httpx.Response(200, json={"anforandelista": {"anforande": rows}})

    client, http = _client(handler, fast_sleep)
    async with http:
        speeches = await client.fetch_speeches("m1", limit=5)
    assert len(speeches) == 1
    assert speeches[0].text == "Herr talman! Jag yrkar bifall."
    assert speeches[0].title == "Budget"
    assert speeches[0].document_id == "H901"


@pytest.mark.asyncio
async def test_fetch_votes_individual_and_rollup(fast_sleep) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if "gruppering" in request.url.params:
            row = {"parti": "S", "Ja": "90", "Nej": "5", "Avstår": "1", "Frånvarande": "4"}
        else:
            row = {
                "votering_id": "v1",
                "intressent_id": "m1",
                "namn": "Anna Svensson",
                "parti": "S",
                "rost": "Ja",
                "beteckning": "FiU1",
                "punkt": "2",
            }
        return httpx.Response(200, json={"voteringlista": {"votering": row}})

    client, http = _client(handler, fast_sleep)
    async with http:
        individual = await client.fetch_votes(designation="FiU1", point="2")
        rollup = await client.fetch_votes(designation="FiU1", grouping="parti")

    assert isinstance(individual[0], IndividualVote)
    assert individual[0].kind == "individual"
    assert individual[0].choice == "Ja"
    assert isinstance(rollup[0], RollupVote)
    assert rollup[0].kind == "rollup"
    assert (rollup[0].group, rollup[0].yes, rollup[0].no, rollup[0].abstain, rollup[0].absent) == (
        "S",
        90,
        5,
        1,
        4,
    )


def test_member_without_id_is_ignored() -> None:
    assert member_to_unit({"tilltalsnamn": "Ingen"}) is None
    assert member_to_unit({"intressent_id": "7"}).display_name == "7"
