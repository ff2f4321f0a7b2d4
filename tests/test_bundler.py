# =============================================================================
# test_bundler.py - Bundler Unit Tests
# =============================================================================
# Tests for grouping ByteRanges into regions and flattening regions into
# a single image.
# =============================================================================

import pytest
from z80asm.assembler.bundler import Region, bundle, flatten
from z80asm.assembler.encoder import ByteRange
from z80asm.errors import BundleError


# =============================================================================
# Helper Functions
# =============================================================================

def byte_range(address: int, hex_bytes: str, discard: bool = False) -> ByteRange:
    return ByteRange(
        address=address,
        data=bytes.fromhex(hex_bytes),
        ready=not discard,
        discard=discard,
    )


def region(base: int, hex_bytes: str) -> Region:
    return Region(base=base, data=bytearray.fromhex(hex_bytes))


# =============================================================================
# Bundling
# =============================================================================

class TestBundle:

    def test_empty(self):
        assert bundle([]) == []

    def test_contiguous_ranges_form_one_region(self):
        regions = bundle([
            byte_range(0x100, "3E 12"),
            byte_range(0x102, "47"),
        ])
        assert len(regions) == 1
        assert regions[0].base == 0x100
        assert bytes(regions[0].data) == bytes.fromhex("3E 12 47")

    def test_region_length_is_sum_of_ranges(self):
        ranges = [byte_range(0, "00"), byte_range(1, "21 00 10"), byte_range(4, "76")]
        (only,) = bundle(ranges)
        assert len(only) == sum(len(r) for r in ranges)
        assert only.end == 5

    def test_gap_starts_new_region(self):
        regions = bundle([
            byte_range(0x000, "00"),
            byte_range(0x200, "76"),
        ])
        assert [(r.base, bytes(r.data)) for r in regions] == [
            (0x000, b"\x00"),
            (0x200, b"\x76"),
        ]

    def test_discarded_ranges_skipped(self):
        regions = bundle([
            byte_range(0, "00"),
            byte_range(1, "FF", discard=True),
            byte_range(1, "76"),
        ])
        assert len(regions) == 1
        assert bytes(regions[0].data) == b"\x00\x76"

    def test_wrapped_counter_starts_new_region(self):
        regions = bundle([byte_range(0xFFFF, "00"), byte_range(0x0000, "00")])
        assert [r.base for r in regions] == [0xFFFF, 0x0000]

    def test_range_split_at_top_of_memory(self):
        regions = bundle([byte_range(0xFFFE, "21 34 12"), byte_range(0x0001, "00")])
        assert [(r.base, bytes(r.data)) for r in regions] == [
            (0xFFFE, bytes.fromhex("21 34")),
            (0x0000, bytes.fromhex("12 00")),
        ]
        assert all(r.end <= 0x10000 for r in regions)


# =============================================================================
# Flattening
# =============================================================================

class TestFlatten:

    def test_no_regions(self):
        assert flatten([]) == (0, b"")

    def test_single_region(self):
        assert flatten([region(0x8000, "C3 00 80")]) == (0x8000, bytes.fromhex("C3 00 80"))

    def test_gap_filled(self):
        base, image = flatten([region(0x100, "01"), region(0x103, "02")])
        assert base == 0x100
        assert image == bytes.fromhex("01 FF FF 02")

    def test_custom_fill(self):
        _, image = flatten([region(0, "01"), region(2, "02")], fill=0x00)
        assert image == bytes.fromhex("01 00 02")

    def test_regions_sorted_by_base(self):
        base, image = flatten([region(0x10, "BB"), region(0x0F, "AA")])
        assert base == 0x0F
        assert image == bytes.fromhex("AA BB")

    def test_overlap_rejected(self):
        with pytest.raises(BundleError):
            flatten([region(0x100, "00 00 00"), region(0x102, "76")])
