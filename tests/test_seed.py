"""Tests for Mulberry32 and SeedManager."""

import random
import threading

import pytest

from corehill.core.seed import SEED_LIMIT, Mulberry32, SeedManager


class TestMulberry32:
    @pytest.mark.parametrize("seed, expected", [
        (0, [0.26642920868471265, 0.0003297457005828619, 0.2232720274478197]),
        (42, [0.6011037519201636, 0.44829055899754167]),
    ])
    def test_known_stream(self, seed, expected):
        rng = Mulberry32(seed)
        assert [rng.random() for _ in expected] == expected

    def test_same_seed_same_stream(self):
        a = Mulberry32(12345)
        b = Mulberry32(12345)
        assert [a.random() for _ in range(50)] == [b.random() for _ in range(50)]

    def test_different_seed_different_stream(self):
        a = Mulberry32(1)
        b = Mulberry32(2)
        assert [a.random() for _ in range(10)] != [b.random() for _ in range(10)]

    def test_range(self):
        rng = Mulberry32(99)
        for _ in range(1000):
            x = rng.random()
            assert 0.0 <= x < 1.0

    def test_state_advances_by_fixed_increment(self):
        rng = Mulberry32(0)
        rng.next_uint32()
        assert rng.state == 0x6D2B79F5
        rng.next_uint32()
        assert rng.state == (2 * 0x6D2B79F5) & 0xFFFFFFFF

    def test_output_is_uint32(self):
        rng = Mulberry32(7)
        for _ in range(100):
            assert 0 <= rng.next_uint32() <= 0xFFFFFFFF

    def test_random_is_uint32_over_two_pow_32(self):
        a = Mulberry32(42)
        b = Mulberry32(42)
        assert a.random() == b.next_uint32() / 4294967296

    def test_seed_masked_to_32_bits(self):
        assert Mulberry32(2**32 + 5).state == 5

    def test_randrange_bounds(self):
        rng = Mulberry32(3)
        values = [rng.randrange(10) for _ in range(500)]
        assert min(values) >= 0
        assert max(values) <= 9
        assert len(set(values)) == 10

    def test_randrange_matches_floor_of_random(self):
        a = Mulberry32(11)
        b = Mulberry32(11)
        for _ in range(20):
            assert a.randrange(7601) == int(b.random() * 7601)

    @pytest.mark.parametrize("n", [0, -1])
    def test_randrange_rejects_non_positive(self, n):
        with pytest.raises(ValueError):
            Mulberry32(1).randrange(n)


class TestSeedManager:
    def test_seeds_in_range(self):
        mgr = SeedManager()
        for _ in range(200):
            assert 0 <= mgr.next_seed() < SEED_LIMIT

    def test_explicit_source_reproducible(self):
        a = SeedManager(source=random.Random(5))
        b = SeedManager(source=random.Random(5))
        assert [a.next_seed() for _ in range(5)] == [b.next_seed() for _ in range(5)]

    def test_master_seed_reproducible(self):
        a = SeedManager(42)
        b = SeedManager(42)
        assert a.deterministic
        assert [a.next_seed() for _ in range(5)] == [b.next_seed() for _ in range(5)]

    def test_master_seed_rounds_differ(self):
        mgr = SeedManager(42)
        seeds = [mgr.next_seed() for _ in range(20)]
        assert len(set(seeds)) == 20

    def test_different_master_seeds(self):
        assert SeedManager(1).next_seed() != SeedManager(2).next_seed()

    def test_derive_seed_stable(self):
        mgr = SeedManager(42)
        assert mgr.derive_seed("round", 3) == mgr.derive_seed("round", 3)
        assert mgr.derive_seed("round", 3) != mgr.derive_seed("round", 4)
        assert 0 <= mgr.derive_seed("round", 3) < SEED_LIMIT

    def test_derive_seed_needs_master(self):
        with pytest.raises(ValueError):
            SeedManager().derive_seed("round", 1)

    def test_get_rng_is_mulberry(self):
        rng = SeedManager.get_rng(77)
        assert isinstance(rng, Mulberry32)
        assert rng.state == 77

    def test_does_not_touch_global_random(self):
        random.seed(0)
        expected = random.random()

        random.seed(0)
        mgr = SeedManager()
        for _ in range(10):
            SeedManager.get_rng(mgr.next_seed()).random()
        assert random.random() == expected

    def test_concurrent_next_seed_matches_sequential(self):
        sequential = SeedManager(42)
        expected = [sequential.next_seed() for _ in range(400)]

        shared = SeedManager(42)
        seen = []
        seen_lock = threading.Lock()

        def draw():
            for _ in range(100):
                seed = shared.next_seed()
                with seen_lock:
                    seen.append(seed)

        threads = [threading.Thread(target=draw) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert sorted(seen) == sorted(expected)
