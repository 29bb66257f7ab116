"""Unit tests for guild_sync.sync.classifier."""

from __future__ import annotations

import random
from unittest.mock import AsyncMock, patch

import pytest

from factories import make_character, make_member
from guild_sync.sync.classifier import (
    Classification,
    classify_members,
    get_classified_guild_members,
)


def _by_name(classified):
    return {c.member.character_name: c for c in classified}


class TestClassifyMembers:
    """Tests for classify_members."""

    def test_explicit_main_wins_in_owner_group(self):
        members = [
            make_member(1, make_character(id=11, name="Alpha", user_id=5), rank=0),
            make_member(2, make_character(id=12, name="Beta", user_id=5), rank=1),
            make_member(
                3, make_character(id=13, name="Zed", user_id=5), rank=8, is_main=True
            ),
        ]

        result = _by_name(classify_members(members))

        assert result["Zed"].classification is Classification.MAIN
        assert result["Zed"].main_character_id is None
        for name in ("Alpha", "Beta"):
            assert result[name].classification is Classification.ALT
            assert result[name].main_character_id == 13
            assert result[name].group_key == 5

    def test_owner_group_without_explicit_main_uses_rank_then_name(self):
        members = [
            make_member(1, make_character(id=11, name="bravo", user_id=5), rank=2),
            make_member(2, make_character(id=12, name="Alpha", user_id=5), rank=2),
            make_member(3, make_character(id=13, name="Charlie", user_id=5), rank=4),
        ]

        result = _by_name(classify_members(members))

        assert result["Alpha"].classification is Classification.MAIN
        assert result["bravo"].main_character_id == 12
        assert result["Charlie"].main_character_id == 12

    def test_character_level_main_flag_is_ignored(self):
        members = [
            make_member(1, make_character(id=11, name="Alpha", user_id=5), rank=0),
            make_member(
                2, make_character(id=12, name="Zed", user_id=5, is_main=True), rank=8
            ),
        ]

        result = _by_name(classify_members(members))

        assert result["Alpha"].classification is Classification.MAIN
        assert result["Zed"].classification is Classification.ALT

    def test_several_explicit_mains_first_by_rank_wins(self):
        members = [
            make_member(1, make_character(id=11, name="A", user_id=5), rank=3, is_main=True),
            make_member(2, make_character(id=12, name="B", user_id=5), rank=1, is_main=True),
        ]

        result = _by_name(classify_members(members))

        assert result["B"].classification is Classification.MAIN
        assert result["A"].classification is Classification.ALT

    def test_fingerprint_group_lowest_rank_is_main(self):
        members = [
            make_member(1, make_character(id=21, name="One", toy_hash="abc"), rank=1),
            make_member(2, make_character(id=22, name="Zero", toy_hash="abc"), rank=0),
        ]

        result = _by_name(classify_members(members))

        assert result["Zero"].classification is Classification.MAIN
        assert result["One"].classification is Classification.ALT
        assert result["One"].main_character_id == 22
        assert result["One"].group_key == "abc"

    def test_fingerprint_group_ignores_explicit_main(self):
        members = [
            make_member(
                1, make_character(id=21, name="Flagged", toy_hash="abc"), rank=5, is_main=True
            ),
            make_member(2, make_character(id=22, name="Leader", toy_hash="abc"), rank=0),
        ]

        result = _by_name(classify_members(members))

        assert result["Leader"].classification is Classification.MAIN

    def test_member_without_owner_or_fingerprint_is_own_main(self):
        members = [make_member(1, make_character(id=31, name="Solo"), rank=6)]

        [entry] = classify_members(members)

        assert entry.classification is Classification.MAIN
        assert entry.group_key is None
        assert entry.main_character_id is None

    def test_ungrouped_members_never_linked(self):
        members = [
            make_member(1, make_character(id=31, name="Solo1"), rank=6),
            make_member(2, make_character(id=32, name="Solo2"), rank=6),
        ]

        result = classify_members(members)

        assert all(c.classification is Classification.MAIN for c in result)

    def test_owner_takes_precedence_over_fingerprint(self):
        members = [
            make_member(1, make_character(id=41, name="Owned", user_id=9, toy_hash="abc"), 1),
            make_member(2, make_character(id=42, name="Loose", toy_hash="abc"), 0),
        ]

        result = _by_name(classify_members(members))

        assert result["Owned"].group_key == 9
        assert result["Loose"].group_key == "abc"
        assert result["Owned"].classification is Classification.MAIN
        assert result["Loose"].classification is Classification.MAIN

    def test_input_order_does_not_matter(self):
        members = [
            make_member(1, make_character(id=11, name="A", user_id=5), rank=1),
            make_member(2, make_character(id=12, name="B", user_id=5), rank=0),
            make_member(3, make_character(id=21, name="C", toy_hash="h"), rank=2),
            make_member(4, make_character(id=22, name="D", toy_hash="h"), rank=2),
            make_member(5, make_character(id=31, name="E"), rank=3),
        ]
        shuffled = members[:]
        random.Random(4).shuffle(shuffled)

        def summary(result):
            return [
                (c.member.id, c.classification, c.group_key, c.main_character_id)
                for c in result
            ]

        assert summary(classify_members(members)) == summary(classify_members(shuffled))


class TestGetClassifiedGuildMembers:
    """Tests for get_classified_guild_members."""

    @pytest.mark.asyncio
    @patch("guild_sync.sync.classifier.get_current_members", new_callable=AsyncMock)
    async def test_loads_current_members(self, mock_members, mock_session):
        mock_members.return_value = [
            make_member(1, make_character(id=31, name="Solo"), rank=0)
        ]

        result = await get_classified_guild_members(mock_session, 7)

        mock_members.assert_awaited_once_with(mock_session, 7)
        assert len(result) == 1
