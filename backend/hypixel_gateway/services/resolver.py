"""
Identifier resolution: pick exactly one caller identity from a request.

Each endpoint family declares an ordered tuple of fields. The first populated
field wins; later ones are ignored even when present. A ``direct`` field is
used as-is, an ``alias`` field costs one ``username_to_uuid`` call on the
collaborator, whose error propagates unchanged.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Tuple

from hypixel_gateway.core.errors import InvalidRequestError


class FieldKind(str, Enum):
    DIRECT = "direct"
    ALIAS = "alias"


@dataclass(frozen=True)
class IdentityField:
    name: str
    kind: FieldKind = FieldKind.DIRECT
    # Which identity the value (or its resolved form) stands for, e.g. a
    # guild id versus a player uuid. Defaults to the field name.
    target: Optional[str] = None

    @property
    def identity(self) -> str:
        return self.target or self.name

    def extract(self, query: Mapping[str, str]) -> Optional[str]:
        value = query.get(self.name)
        return value if value else None


@dataclass(frozen=True)
class ResolutionPlan:
    fields: Tuple[IdentityField, ...]
    # Field names as listed in the missing-fields message.
    accepted: Tuple[str, ...]

    def missing_message(self) -> str:
        return f"Missing one or more fields [{', '.join(self.accepted)}]"

    def select(self, query: Mapping[str, str]) -> Tuple[IdentityField, str]:
        """Return the winning field and its raw value, without any lookup."""
        for field in self.fields:
            value = field.extract(query)
            if value is not None:
                return field, value
        raise InvalidRequestError(self.missing_message())


@dataclass(frozen=True)
class ResolvedIdentity:
    kind: str
    value: str


async def resolve(plan: ResolutionPlan, query: Mapping[str, str], service) -> ResolvedIdentity:
    field, value = plan.select(query)
    if field.kind is FieldKind.ALIAS:
        value = await service.call("username_to_uuid", value)
    return ResolvedIdentity(kind=field.identity, value=value)


PLAYER_PLAN = ResolutionPlan(
    fields=(
        IdentityField("uuid"),
        IdentityField("username", FieldKind.ALIAS, target="uuid"),
    ),
    accepted=("username", "uuid"),
)

GUILD_PLAN = ResolutionPlan(
    fields=(
        IdentityField("id"),
        IdentityField("name"),
        IdentityField("player"),
        IdentityField("username", FieldKind.ALIAS, target="player"),
    ),
    accepted=("id", "name", "player", "username"),
)

SKYBLOCK_PROFILE_PLAN = ResolutionPlan(
    fields=(IdentityField("profile"),),
    accepted=("profile",),
)

SKYBLOCK_AUCTION_PLAN = ResolutionPlan(
    fields=(
        IdentityField("player"),
        IdentityField("username", FieldKind.ALIAS, target="player"),
        IdentityField("uuid"),
        IdentityField("profile"),
    ),
    accepted=("player", "uuid", "profile", "username"),
)
