"""
Wire models for the upstream rewards API.

Purpose
-------
Decode the JSON:API style envelopes returned by `GET /api/rewards/{id}` and
`GET /api/campaigns/{id}` into immutable value objects, and define the
classified `RewardResult` that flows out of the fetch dispatcher.

Design Notes
------------
- Ids arrive as quoted strings (`"id": "10206990"`) and are parsed as such; a
  bare JSON number is a decode error.
- A missing or null relationship decodes to id 0, which means "no campaign".
- `Reward` and `Campaign` are frozen. A re-fetch produces a new value.
- Reward 7790866 always reports as available. Upstream reports `remaining = 0`
  for it even while it can be pledged.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, NewType, Optional

from rewardwatch.core.exceptions import PayloadDecodeError
from rewardwatch.modules.shared.exceptions import NoCampaignError

RewardId = NewType("RewardId", int)
CampaignId = NewType("CampaignId", int)

ALWAYS_AVAILABLE_REWARD_IDS = frozenset({RewardId(7790866)})

DEFAULT_BASE_URL = "https://www.patreon.com/"

CURRENCY_SYMBOLS = {"EUR": "€", "USD": "$", "GBP": "£"}


# ============================================================================
# Decoding helpers
# ============================================================================


def parse_id(raw: Any) -> int:
    """
    Parse a string-encoded numeric id.

    >>> parse_id("10206990")
    10206990
    """
    if not isinstance(raw, str):
        raise PayloadDecodeError("id must be a quoted string", raw)
    try:
        return int(raw)
    except ValueError as exc:
        raise PayloadDecodeError(f"id {raw!r} is not numeric", raw) from exc


def parse_relationship_id(relationships: Mapping[str, Any], name: str) -> int:
    relation = relationships.get(name) or {}
    data = relation.get("data") if isinstance(relation, Mapping) else None
    if not data:
        return 0
    return parse_id(data.get("id"))


def parse_timestamp(raw: Any) -> Optional[datetime]:
    if raw in (None, ""):
        return None
    if not isinstance(raw, str):
        raise PayloadDecodeError("timestamp must be a string", raw)
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as exc:
        raise PayloadDecodeError(f"invalid timestamp {raw!r}", raw) from exc


def unwrap_envelope(payload: Any) -> Mapping[str, Any]:
    """Return the ``data`` object of a ``{"data": {...}}`` envelope."""
    if not isinstance(payload, Mapping):
        raise PayloadDecodeError("response is not a JSON object", payload)
    data = payload.get("data")
    if not isinstance(data, Mapping):
        raise PayloadDecodeError("response has no 'data' object", payload)
    return data


def currency_symbol(currency: str) -> str:
    code = (currency or "").upper()
    return CURRENCY_SYMBOLS.get(code, code)


def format_money(cents: int, currency: str) -> str:
    return f"{cents / 100:.2f} {currency_symbol(currency)}"


# ============================================================================
# Entities
# ============================================================================


@dataclass(frozen=True)
class Reward:
    id: RewardId
    amount_cents: int
    remaining: int
    title: str
    campaign_id: CampaignId
    currency: str = "USD"
    description: str = ""
    url: str = ""
    image_url: str = ""
    user_limit: int = 0
    published: bool = False
    created_at: Optional[datetime] = None
    edited_at: Optional[datetime] = None
    published_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "Reward":
        attributes = data.get("attributes") or {}
        relationships = data.get("relationships") or {}
        try:
            return cls(
                id=RewardId(parse_id(data.get("id"))),
                amount_cents=int(attributes.get("amount_cents") or 0),
                remaining=int(attributes.get("remaining") or 0),
                title=str(attributes.get("title") or ""),
                campaign_id=CampaignId(parse_relationship_id(relationships, "campaign")),
                currency=str(attributes.get("currency") or "USD"),
                description=str(attributes.get("description") or ""),
                url=str(attributes.get("url") or ""),
                image_url=str(attributes.get("image_url") or ""),
                user_limit=int(attributes.get("user_limit") or 0),
                published=bool(attributes.get("published", False)),
                created_at=parse_timestamp(attributes.get("created_at")),
                edited_at=parse_timestamp(attributes.get("edited_at")),
                published_at=parse_timestamp(attributes.get("published_at")),
            )
        except (TypeError, ValueError, AttributeError) as exc:
            raise PayloadDecodeError(f"malformed reward: {exc}", data) from exc

    def is_available(self) -> bool:
        if self.id in ALWAYS_AVAILABLE_REWARD_IDS:
            return True
        return self.remaining > 0

    def campaign_ref(self) -> CampaignId:
        if self.campaign_id == 0:
            raise NoCampaignError(self.id)
        return self.campaign_id

    def full_url(self, base_url: str = DEFAULT_BASE_URL) -> str:
        return base_url.rstrip("/") + "/" + self.url.lstrip("/")

    def formatted_amount(self) -> str:
        return format_money(self.amount_cents, self.currency)


@dataclass(frozen=True)
class Campaign:
    id: CampaignId
    name: str
    url: str
    image_url: str = ""
    is_nsfw: bool = False
    created_at: Optional[datetime] = None
    published_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "Campaign":
        attributes = data.get("attributes") or {}
        try:
            return cls(
                id=CampaignId(parse_id(data.get("id"))),
                name=str(attributes.get("name") or ""),
                url=str(attributes.get("url") or ""),
                image_url=str(attributes.get("image_url") or ""),
                is_nsfw=bool(attributes.get("is_nsfw", False)),
                created_at=parse_timestamp(attributes.get("created_at")),
                published_at=parse_timestamp(attributes.get("published_at")),
            )
        except (TypeError, ValueError, AttributeError) as exc:
            raise PayloadDecodeError(f"malformed campaign: {exc}", data) from exc


# ============================================================================
# Classified results
# ============================================================================


class RewardStatus(Enum):
    FOUND = ("found", "Found")
    UNKNOWN = ("unknown", "Unknown error")
    FORBIDDEN = ("forbidden", "Access forbidden")
    NOT_FOUND = ("not_found", "Not found")
    NO_CAMPAIGN = ("no_campaign", "No associated campaign")
    RATE_LIMIT = ("rate_limit", "Rate limited by upstream")
    INTERNAL_SERVER_ERROR = ("internal_server_error", "Upstream server error")
    GATEWAY_ERROR = ("gateway_error", "Upstream gateway error")

    def __init__(self, code: str, reason: str) -> None:
        self.code = code
        self.reason = reason


@dataclass(frozen=True)
class RewardResult:
    id: RewardId
    reward: Optional[Reward] = None
    status: RewardStatus = RewardStatus.FOUND

    def __post_init__(self) -> None:
        if self.status is RewardStatus.FOUND and self.reward is None:
            raise ValueError(f"FOUND result for {self.id} must carry a reward")
        if self.reward is not None and self.status not in (
            RewardStatus.FOUND,
            RewardStatus.NO_CAMPAIGN,
        ):
            raise ValueError(f"{self.status.name} result for {self.id} cannot carry a reward")

    def is_present(self) -> bool:
        return self.reward is not None

    def is_available(self) -> bool:
        return self.reward is not None and self.reward.is_available()

    def with_status(self, status: RewardStatus) -> "RewardResult":
        return replace(self, status=status)
