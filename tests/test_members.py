"""Unit tests for guild_sync.sync.members."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from factories import make_character, make_member, roster_entry
from guild_sync.sync.errors import DatabaseError
from guild_sync.sync.members import sync_guild_members_table

PATCH_BASE = "guild_sync.sync.members"


@pytest.fixture
def repo():
    """Patch every repository call made by the membership sync."""
    with (
        patch(f"{PATCH_BASE}.get_current_members", new_callable=AsyncMock) as current,
        patch(
            f"{PATCH_BASE}.find_characters_by_name_realm_pairs", new_callable=AsyncMock
        ) as find_chars,
        patch(f"{PATCH_BASE}.create_character", new_callable=AsyncMock) as create,
        patch(f"{PATCH_BASE}.bulk_create_members", new_callable=AsyncMock) as bulk_create,
        patch(f"{PATCH_BASE}.bulk_update_members", new_callable=AsyncMock) as bulk_update,
        patch(f"{PATCH_BASE}.bulk_delete_members", new_callable=AsyncMock) as bulk_delete,
        patch(f"{PATCH_BASE}.logger"),
    ):
        current.return_value = []
        find_chars.return_value = []
        yield MagicMock(
            get_current_members=current,
            find_characters=find_chars,
            create_character=create,
            bulk_create=bulk_create,
            bulk_update=bulk_update,
            bulk_delete=bulk_delete,
        )


def _created(id: int) -> MagicMock:
    row = MagicMock()
    row.id = id
    return row


# ---------------------------------------------------------------------------
# TestSyncGuildMembersTable
# ---------------------------------------------------------------------------


class TestSyncGuildMembersTable:
    """Tests for sync_guild_members_table."""

    @pytest.mark.asyncio
    async def test_creates_unknown_and_adds_known(self, repo, mock_session, sample_roster):
        repo.find_characters.return_value = [make_character(id=101, name="Char1")]
        repo.create_character.return_value = _created(202)

        result = await sync_guild_members_table(mock_session, 7, sample_roster, "eu")

        repo.find_characters.assert_awaited_once()
        repo.create_character.assert_awaited_once()
        created_row = repo.create_character.call_args[0][1]
        assert created_row["name"] == "Char2"
        assert created_row["region"] == "eu"
        assert created_row["is_main"] is False

        rows = repo.bulk_create.call_args[0][1]
        assert [(r["character_id"], r["rank"]) for r in rows] == [(101, 0), (202, 1)]
        assert all(r["guild_id"] == 7 for r in rows)
        repo.bulk_update.assert_awaited_once_with(mock_session, [])
        repo.bulk_delete.assert_awaited_once_with(mock_session, [])
        mock_session.commit.assert_awaited_once()

        assert result.characters_created == 1
        assert result.added == 2
        assert result.removed == 0

    @pytest.mark.asyncio
    async def test_incomplete_roster_entry_is_skipped(self, repo, mock_session):
        repo.find_characters.return_value = [make_character(id=101, name="Char1")]
        roster = {
            "members": [
                roster_entry("Char1", "r1", 1),
                {"character": {"name": "NoRealm"}, "rank": 2},
            ]
        }

        result = await sync_guild_members_table(mock_session, 7, roster, "eu")

        repo.create_character.assert_not_awaited()
        rows = repo.bulk_create.call_args[0][1]
        assert [r["character_id"] for r in rows] == [101]
        mock_session.commit.assert_awaited_once()
        assert result.added == 1

    @pytest.mark.asyncio
    async def test_updates_and_removes_existing(self, repo, mock_session):
        char1 = make_character(id=101, name="Char1")
        gone = make_character(id=102, name="Gone")
        repo.get_current_members.return_value = [
            make_member(1, char1, rank=3),
            make_member(2, gone, rank=5),
        ]
        repo.find_characters.return_value = [char1]
        roster = {"members": [roster_entry("Char1", "r1", 1)]}

        result = await sync_guild_members_table(mock_session, 7, roster, "eu")

        updates = repo.bulk_update.call_args[0][1]
        assert updates == [
            {"id": 1, "member_data_json": roster["members"][0], "rank": 1}
        ]
        repo.bulk_delete.assert_awaited_once_with(mock_session, [2])
        repo.create_character.assert_not_awaited()
        assert result.updated == 1
        assert result.removed == 1

    @pytest.mark.asyncio
    async def test_member_without_realm_is_ignored(self, repo, mock_session):
        orphan = make_member(1, make_character(id=101, realm=""), rank=1)
        repo.get_current_members.return_value = [orphan]

        result = await sync_guild_members_table(mock_session, 7, {"members": []}, "eu")

        repo.bulk_delete.assert_awaited_once_with(mock_session, [])
        assert result.removed == 0

    @pytest.mark.asyncio
    async def test_failed_character_creation_skips_only_that_member(
        self, repo, mock_session, sample_roster
    ):
        repo.create_character.side_effect = [
            IntegrityError("insert", {}, Exception("duplicate")),
            _created(303),
        ]

        result = await sync_guild_members_table(mock_session, 7, sample_roster, "eu")

        rows = repo.bulk_create.call_args[0][1]
        assert [r["character_id"] for r in rows] == [303]
        assert result.characters_created == 1
        assert mock_session.begin_nested.call_count == 2

    @pytest.mark.asyncio
    async def test_database_failure_rolls_back_and_raises(
        self, repo, mock_session, sample_roster
    ):
        repo.bulk_create.side_effect = OperationalError("insert", {}, Exception("down"))

        with pytest.raises(DatabaseError):
            await sync_guild_members_table(mock_session, 7, sample_roster, "eu")

        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_awaited()
        repo.bulk_update.assert_not_awaited()
        repo.bulk_delete.assert_not_awaited()
