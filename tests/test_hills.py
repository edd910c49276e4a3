"""Tests for the hill registry."""

import pytest

from corehill.hills import (
    DEFAULT_HILL,
    HILL_SLUGS,
    HILLS,
    MAX_WARRIOR_LENGTH,
    Hill,
    HillConfig,
    _build_registry,
    _TABLE,
    get_hill,
    is_valid_hill,
)


class TestRegistry:
    def test_three_hills(self):
        assert set(HILL_SLUGS) == {"big", "94nop", "megacore"}

    def test_default_is_big(self):
        assert DEFAULT_HILL == "big"
        assert get_hill(DEFAULT_HILL) is HILLS["big"]

    def test_slug_matches_key(self):
        for slug, hill in HILLS.items():
            assert hill.slug == slug

    def test_big_parameters(self):
        big = get_hill("big")
        assert (big.core_size, big.max_cycles, big.max_tasks) == (55440, 500000, 10000)
        assert (big.max_length, big.min_separation, big.num_rounds) == (200, 200, 5)
        assert big.name == "Big Hill"

    def test_94nop_parameters(self):
        nop = get_hill("94nop")
        assert (nop.core_size, nop.max_cycles, nop.max_tasks) == (8000, 80000, 8000)
        assert (nop.max_length, nop.min_separation, nop.num_rounds) == (100, 100, 5)

    def test_megacore_parameters(self):
        mega = get_hill("megacore")
        assert (mega.core_size, mega.max_cycles, mega.max_tasks) == (1000000, 10000000, 100000)
        assert (mega.max_length, mega.min_separation, mega.num_rounds) == (1000, 1000, 5)

    def test_max_warrior_length_is_loosest_limit(self):
        assert MAX_WARRIOR_LENGTH == 1000
        assert MAX_WARRIOR_LENGTH == max(h.max_length for h in HILLS.values())

    def test_registry_is_read_only(self):
        with pytest.raises(TypeError):
            HILLS["tiny"] = HILLS["big"]

    def test_settings_subset(self):
        s = get_hill("94nop").settings
        assert s.core_size == 8000
        assert s.max_cycles == 80000
        assert s.max_length == 100
        assert s.max_tasks == 8000
        assert s.min_separation == 100


class TestLookup:
    @pytest.mark.parametrize("slug", ["big", "94nop", "megacore"])
    def test_valid(self, slug):
        assert is_valid_hill(slug)
        assert get_hill(slug).slug == slug

    @pytest.mark.parametrize("slug", ["", "BIG", "Big", "nop94", "mega"])
    def test_unknown_or_wrong_case(self, slug):
        assert not is_valid_hill(slug)
        assert get_hill(slug) is None


class TestBuildRegistry:
    def test_mismatched_slug_rejected(self):
        table = dict(_TABLE)
        big = table[Hill.BIG]
        table[Hill.BIG] = HillConfig(**{**big.__dict__, "slug": "huge"})
        with pytest.raises(ValueError, match="declares slug"):
            _build_registry(table)

    def test_missing_entry_rejected(self):
        table = dict(_TABLE)
        del table[Hill.MEGACORE]
        with pytest.raises(ValueError, match="missing"):
            _build_registry(table)
