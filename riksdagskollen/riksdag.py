"""Client for the Riksdag open-data API (members, speeches, votes)."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal, Union

import httpx
import structlog

from .config import RiksdagSettings
from .engine.feed import clean_text
from .state import WorkUnit

Sleep = Callable[[float], Awaitable[None]]

MAX_PAGES = 50


class RiksdagApiError(RuntimeError):
    """Raised when the open-data API is unreachable or returns garbage."""


@dataclass(frozen=True, slots=True)
class Speech:
    id: str
    member_id: str
    document_id: str | None
    title: str | None
    date: str | None
    text: str


@dataclass(frozen=True, slots=True)
class IndividualVote:
    """One member's vote on one voting point."""

    vote_id: str
    member_id: str
    name: str
    party: str
    choice: str
    designation: str | None = None
    point: str | None = None
    kind: Literal["individual"] = "individual"


@dataclass(frozen=True, slots=True)
class RollupVote:
    """Aggregated counts for one group (party, constituency, ...)."""

    group_by: str
    group: str
    yes: int = 0
    no: int = 0
    abstain: int = 0
    absent: int = 0
    kind: Literal["rollup"] = "rollup"


Vote = Union[IndividualVote, RollupVote]


def _as_list(value: Any) -> list[dict]:
    if value is None:
        return []
    if isinstance(value, list):
        return [item for item in value if isinstance(item, dict)]
    if isinstance(value, dict):
        return [value]
    return []


def _count(row: dict, *keys: str) -> int:
    for key in keys:
        if key in row and row[key] not in (None, ""):
            try:
                return int(row[key])
            except (TypeError, ValueError):
                return 0
    return 0


def resolve_vote(row: dict, grouping: str | None = None) -> Vote:
    if grouping:
        return RollupVote(
            group_by=grouping,
            group=str(row.get(grouping) or row.get("namn") or ""),
            yes=_count(row, "Ja", "ja"),
            no=_count(row, "Nej", "nej"),
            abstain=_count(row, "Avstår", "avstar", "avstår"),
            absent=_count(row, "Frånvarande", "franvarande", "frånvarande"),
        )
    return IndividualVote(
        vote_id=str(row.get("votering_id") or ""),
        member_id=str(row.get("intressent_id") or ""),
        name=str(row.get("namn") or ""),
        party=str(row.get("parti") or ""),
        choice=str(row.get("rost") or ""),
        designation=row.get("beteckning"),
        point=row.get("punkt"),
    )


def member_to_unit(person: dict) -> WorkUnit | None:
    member_id = person.get("intressent_id")
    if not member_id:
        return None
    first = str(person.get("tilltalsnamn") or "").strip()
    last = str(person.get("efternamn") or "").strip()
    name = " ".join(part for part in (first, last) if part) or str(member_id)
    return WorkUnit(id=str(member_id), display_name=name, party_code=str(person.get("parti") or ""))


class RiksdagClient:
    """Thin async wrapper; normalises single-object-or-list payloads."""

    def __init__(
        self,
        settings: RiksdagSettings,
        client: httpx.AsyncClient,
        sleep: Sleep = asyncio.sleep,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.settings = settings
        self.client = client
        self._sleep = sleep
        self.logger = logger or structlog.get_logger("riksdagskollen.riksdag")

    async def load_units(self, limit: int) -> list[WorkUnit]:
        """Current members ordered by party, then surname, at most ``limit``."""

        people: list[dict] = []
        for page in range(1, MAX_PAGES + 1):
            payload = await self._get("personlista", {"rdlstatus": "tjanst", "p": page})
            listing = payload.get("personlista") or {}
            batch = _as_list(listing.get("person"))
            people.extend(batch)
            hits = _count(listing, "@hits") or len(people)
            if not batch or len(people) >= hits:
                break
            await self._sleep(self.settings.page_delay)

        people.sort(
            key=lambda p: (str(p.get("parti") or "").upper(), str(p.get("efternamn") or "").lower())
        )
        units: list[WorkUnit] = []
        seen: set[str] = set()
        for person in people:
            unit = member_to_unit(person)
            if unit is None or unit.id in seen:
                continue
            seen.add(unit.id)
            units.append(unit)
        self.logger.info("members_loaded", total=len(units), limit=limit)
        return units[:limit]

    async def fetch_speeches(self, member_id: str, limit: int = 20) -> list[Speech]:
        payload = await self._get(
            "anforandelista", {"iid": member_id, "sz": limit, "p": 1, "sort": "datum", "sortorder": "desc"}
        )
        rows = _as_list((payload.get("anforandelista") or {}).get("anforande"))
        speeches = []
        for row in rows[:limit]:
            text = clean_text(row.get("anforande_text"))
            if not text:
                continue
            speeches.append(
                Speech(
                    id=str(row.get("anforande_id") or ""),
                    member_id=str(row.get("intressent_id") or member_id),
                    document_id=row.get("dok_id"),
                    title=row.get("titel") or row.get("avsnittsrubrik"),
                    date=row.get("datum") or row.get("dok_datum"),
                    text=text,
                )
            )
        return speeches

    async def fetch_votes(
        self,
        designation: str | None = None,
        point: str | None = None,
        member_id: str | None = None,
        session: str | None = None,
        grouping: str | None = None,
        page: int = 1,
    ) -> list[Vote]:
        params: dict[str, Any] = {"p": page}
        for key, value in (
            ("bet", designation),
            ("punkt", point),
            ("iid", member_id),
            ("rm", session),
            ("gruppering", grouping),
        ):
            if value:
                params[key] = value
        payload = await self._get("voteringlista", params)
        rows = _as_list((payload.get("voteringlista") or {}).get("votering"))
        return [resolve_vote(row, grouping) for row in rows]

    async def _get(self, endpoint: str, params: dict[str, Any]) -> dict:
        url = f"{self.settings.base_url}/{endpoint}/"
        try:
            response = await self.client.get(
                url,
                params={"utformat": "json", **params},
                timeout=self.settings.request_timeout,
            )
        except httpx.HTTPError as exc:
            raise RiksdagApiError(f"{endpoint}: {exc}") from exc
        if response.status_code >= 400:
            raise RiksdagApiError(f"{endpoint}: HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise RiksdagApiError(f"{endpoint}: invalid JSON") from exc
        if not isinstance(payload, dict):
            raise RiksdagApiError(f"{endpoint}: unexpected payload")
        return payload


__all__ = [
    "IndividualVote",
    "RiksdagApiError",
    "RiksdagClient",
    "RollupVote",
    "Speech",
    "Vote",
    "member_to_unit",
    "resolve_vote",
]
