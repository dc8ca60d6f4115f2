"""Tests for per-format config parsing."""

import pytest

from padelbracket.errors import InvalidGroupConfig, InvalidInput
from padelbracket.models import (
    BracketFormat,
    GroupsKnockoutConfig,
    KnockoutConfig,
    config_to_dict,
    parse_bracket_config,
)


def test_knockout_defaults():
    config = parse_bracket_config(BracketFormat.KNOCKOUT, None)
    assert config == KnockoutConfig()


def test_flags_accept_real_booleans():
    config = parse_bracket_config(BracketFormat.KNOCKOUT, {"third_place_match": True})
    assert config.third_place_match is True


@pytest.mark.parametrize(
    "bracket_format, raw",
    [
        (BracketFormat.KNOCKOUT, {"third_place_match": "false"}),
        (BracketFormat.KNOCKOUT, {"third_place_match": 1}),
        (BracketFormat.ROUND_ROBIN, {"use_matchdays": "yes"}),
        (BracketFormat.GROUPS_KNOCKOUT, {"advancing_per_group": 1, "use_matchdays": "false"}),
        (BracketFormat.GROUPS_KNOCKOUT, {"advancing_per_group": 1, "third_place_match": None}),
    ],
)
def test_non_boolean_flags_rejected(bracket_format, raw):
    with pytest.raises(InvalidInput):
        parse_bracket_config(bracket_format, raw)


def test_groups_numbers_from_strings():
    config = parse_bracket_config(
        BracketFormat.GROUPS_KNOCKOUT,
        {"group_count": "2", "teams_per_group": "4", "advancing_per_group": "2"},
    )
    assert (config.group_count, config.teams_per_group, config.advancing_per_group) == (2, 4, 2)


@pytest.mark.parametrize(
    "raw",
    [
        {"group_count": "two", "teams_per_group": 4, "advancing_per_group": 2},
        {"group_count": 2, "teams_per_group": 4, "advancing_per_group": 2, "wildcard_count": "one"},
        {"advancing_per_group": [2]},
    ],
)
def test_groups_bad_numbers_rejected(raw):
    with pytest.raises(InvalidInput):
        parse_bracket_config(BracketFormat.GROUPS_KNOCKOUT, raw)


def test_groups_need_advancing_per_group():
    with pytest.raises(InvalidGroupConfig):
        parse_bracket_config(BracketFormat.GROUPS_KNOCKOUT, {"group_count": 2, "teams_per_group": 4})


def test_groups_without_counts_are_automatic():
    config = parse_bracket_config(BracketFormat.GROUPS_KNOCKOUT, {"advancing_per_group": 2})
    assert config.auto_groups
    assert config.group_count is None and config.teams_per_group is None


def test_group_counts_come_together():
    with pytest.raises(InvalidGroupConfig):
        GroupsKnockoutConfig(advancing_per_group=1, group_count=2)


def test_config_round_trips_through_dict():
    config = GroupsKnockoutConfig(advancing_per_group=1, group_count=3, teams_per_group=3, wildcard_count=1)
    assert parse_bracket_config(BracketFormat.GROUPS_KNOCKOUT, config_to_dict(config)) == config


def test_formats_without_generator_have_no_config():
    assert parse_bracket_config(BracketFormat.AMERICANO, {"anything": 1}) is None
