"""Roster reconciliation: diff a fetched roster against local membership.

Nothing here touches the database. Given the roster, the current members
and the known characters (all keyed by MemberKey), reconcile_roster() produces the
plan that sync_guild_members_table() applies:

- characters_to_create: roster entries with no known character
- members_to_add: known character, no current membership
- members_to_update: current membership found (always refreshed; rank only
  when it changed)
- member_ids_to_remove: current members missing from the roster
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, NamedTuple

from guild_sync.sync.errors import ReconciliationInvariantViolation
from guild_sync.sync.logger import logger

DEFAULT_CLASS = "Unknown"
DEFAULT_ROLE = "DPS"


class MemberKey(NamedTuple):
    """Case-normalized (name, realm slug) key correlating remote and local records."""

    name: str
    realm: str

    @classmethod
    def of(cls, name: str, realm: str) -> "MemberKey":
        return cls(name.lower(), realm.lower())


# ---------------------------------------------------------------------------
# Roster entry accessors
# ---------------------------------------------------------------------------


def entry_name(entry: Mapping[str, Any]) -> str:
    return entry["character"]["name"]


def entry_realm(entry: Mapping[str, Any]) -> str:
    """Realm slug of a roster entry (realm may be an object or a bare slug)."""
    realm = entry["character"]["realm"]
    if isinstance(realm, Mapping):
        return realm["slug"]
    return realm


def entry_class(entry: Mapping[str, Any]) -> str:
    character = entry["character"]
    playable_class = character.get("playable_class") or character.get("class")
    if isinstance(playable_class, Mapping):
        return playable_class.get("name") or DEFAULT_CLASS
    return playable_class or DEFAULT_CLASS


def roster_key(entry: Mapping[str, Any]) -> MemberKey:
    return MemberKey.of(entry_name(entry), entry_realm(entry))


def is_complete_entry(entry: Any) -> bool:
    """True when a roster entry carries a character name, realm and rank."""
    if not isinstance(entry, Mapping) or not isinstance(entry.get("rank"), int):
        return False
    character = entry.get("character")
    if not isinstance(character, Mapping) or not character.get("name"):
        return False
    realm = character.get("realm")
    if isinstance(realm, Mapping):
        realm = realm.get("slug")
    return bool(realm)


def index_roster(roster: Mapping[str, Any]) -> dict[MemberKey, dict[str, Any]]:
    """Key roster members by MemberKey.

    Incomplete entries are logged and left out. A repeated key keeps the
    last entry.
    """
    indexed: dict[MemberKey, dict[str, Any]] = {}
    for entry in roster.get("members", []):
        if not is_complete_entry(entry):
            logger.warning(f"Skipping incomplete roster entry: {entry!r}")
            continue
        indexed[roster_key(entry)] = entry
    return indexed


# ---------------------------------------------------------------------------
# Plan records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExistingMember:
    """The parts of a current GuildMember row the diff needs."""

    id: int
    character_id: int
    rank: int


@dataclass(frozen=True)
class CharacterToCreate:
    key: MemberKey
    name: str
    realm: str
    character_class: str
    level: int
    region: str
    role: str = DEFAULT_ROLE
    is_main: bool = False

    def as_row(self) -> dict[str, Any]:
        """Column values for create_character()."""
        return {
            "name": self.name,
            "realm": self.realm,
            "character_class": self.character_class,
            "level": self.level,
            "role": self.role,
            "is_main": self.is_main,
            "region": self.region,
        }


@dataclass(frozen=True)
class MemberToAdd:
    key: MemberKey
    roster_entry: dict[str, Any]
    character_id: int

    def as_row(self, guild_id: int) -> dict[str, Any]:
        """Column values for bulk_create_members()."""
        return {
            "guild_id": guild_id,
            "character_id": self.character_id,
            "rank": self.roster_entry["rank"],
            "character_name": entry_name(self.roster_entry),
            "character_class": entry_class(self.roster_entry),
            "member_data_json": self.roster_entry,
            "is_available": True,
            "is_main": False,
        }


@dataclass(frozen=True)
class MemberUpdate:
    key: MemberKey
    member_id: int
    member_data: dict[str, Any]
    # None when the stored rank is already current
    rank: int | None = None

    def as_row(self) -> dict[str, Any]:
        """Values for bulk_update_members(); rank only when it changed."""
        row: dict[str, Any] = {"id": self.member_id, "member_data_json": self.member_data}
        if self.rank is not None:
            row["rank"] = self.rank
        return row


@dataclass
class RosterDiff:
    characters_to_create: list[CharacterToCreate] = field(default_factory=list)
    members_to_add: list[MemberToAdd] = field(default_factory=list)
    members_to_update: list[MemberUpdate] = field(default_factory=list)
    member_ids_to_remove: list[int] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when nothing would be created, added, re-ranked or removed."""
        return (
            not self.characters_to_create
            and not self.members_to_add
            and not self.member_ids_to_remove
            and all(u.rank is None for u in self.members_to_update)
        )


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------


def reconcile_roster(
    roster_by_key: Mapping[MemberKey, dict[str, Any]],
    existing_by_key: Mapping[MemberKey, ExistingMember],
    character_ids_by_key: Mapping[MemberKey, int],
    region: str,
) -> RosterDiff:
    """Compute the membership plan for one guild.

    Deterministic: outputs follow the iteration order of the inputs.

    Args:
        roster_by_key: Remote roster entries
        existing_by_key: Current local members
        character_ids_by_key: Known local character ids
        region: Region stamped on characters to create

    Returns:
        The RosterDiff. Raises ReconciliationInvariantViolation if the
        outputs overlap (a bug, never an input problem).
    """
    diff = RosterDiff()

    for key, entry in roster_by_key.items():
        existing = existing_by_key.get(key)
        if existing is not None:
            rank = entry["rank"]
            diff.members_to_update.append(
                MemberUpdate(
                    key=key,
                    member_id=existing.id,
                    member_data=entry,
                    rank=rank if rank != existing.rank else None,
                )
            )
            continue

        character_id = character_ids_by_key.get(key)
        if character_id is not None:
            diff.members_to_add.append(
                MemberToAdd(key=key, roster_entry=entry, character_id=character_id)
            )
        else:
            character = entry["character"]
            diff.characters_to_create.append(
                CharacterToCreate(
                    key=key,
                    name=entry_name(entry),
                    realm=entry_realm(entry),
                    character_class=entry_class(entry),
                    level=character.get("level") or 1,
                    region=region,
                )
            )

    diff.member_ids_to_remove = [
        existing.id
        for key, existing in existing_by_key.items()
        if key not in roster_by_key
    ]

    check_disjoint(diff)
    return diff


def check_disjoint(diff: RosterDiff) -> None:
    """Raise ReconciliationInvariantViolation if any two outputs share a key or id."""
    seen: dict[MemberKey, str] = {}
    groups: list[tuple[str, Iterable[MemberKey]]] = [
        ("characters_to_create", (c.key for c in diff.characters_to_create)),
        ("members_to_add", (m.key for m in diff.members_to_add)),
        ("members_to_update", (u.key for u in diff.members_to_update)),
    ]
    for group, keys in groups:
        for key in keys:
            if key in seen:
                raise ReconciliationInvariantViolation(
                    f"{key} appears in both {seen[key]} and {group}"
                )
            seen[key] = group

    updated_ids = {u.member_id for u in diff.members_to_update}
    overlap = updated_ids.intersection(diff.member_ids_to_remove)
    if overlap:
        raise ReconciliationInvariantViolation(
            f"members {sorted(overlap)} are both updated and removed"
        )


def members_for_created_characters(
    diff: RosterDiff,
    created_ids_by_key: Mapping[MemberKey, int],
    roster_by_key: Mapping[MemberKey, dict[str, Any]],
) -> list[MemberToAdd]:
    """Turn freshly created characters into memberships to add.

    Characters whose creation failed (absent from created_ids_by_key) are
    left out.
    """
    added = []
    for character in diff.characters_to_create:
        character_id = created_ids_by_key.get(character.key)
        entry = roster_by_key.get(character.key)
        if character_id is None or entry is None:
            continue
        added.append(
            MemberToAdd(key=character.key, roster_entry=entry, character_id=character_id)
        )
    return added
