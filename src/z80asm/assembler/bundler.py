"""
Output Bundler
==============

Concatenates the encoder's ByteRanges into contiguous binary regions.

Within one ORG region the encoder's address counter only moves forward,
so statement order equals address order and a region is simply the
concatenation of its ranges. A new region starts wherever a range does
not begin at the address just past the previous one (after an ORG, or
when the counter wraps at $FFFF). No region extends past $FFFF.

    ORG $100          regions:
    NOP                 $0100: 00 C9
    RET
    ORG $200
    HALT                $0200: 76
"""

from dataclasses import dataclass, field
import logging

from z80asm.errors import BundleError
from z80asm.assembler.encoder import ByteRange

logger = logging.getLogger(__name__)

ADDRESS_SPACE = 0x10000


@dataclass
class Region:
    """
    A contiguous block of output.

    Attributes:
        base: Address of the first byte
        data: The bytes, in address order
    """
    base: int
    data: bytearray = field(default_factory=bytearray)

    @property
    def end(self) -> int:
        """Address just past the last byte."""
        return self.base + len(self.data)

    def __len__(self) -> int:
        return len(self.data)


def bundle(ranges: list[ByteRange]) -> list[Region]:
    """
    Group byte ranges into contiguous regions.

    Discarded and empty ranges are skipped. A range running past $FFFF
    is split, and its remainder starts a new region at $0000.

    Returns:
        Regions in statement order
    """
    regions: list[Region] = []
    current = None

    for byte_range in ranges:
        if byte_range.discard or not byte_range.data:
            continue
        address, data = byte_range.address, byte_range.data
        while data:
            if current is None or address != current.end:
                current = Region(base=address)
                regions.append(current)
                logger.debug(f"New region at ${current.base:04X}")
            room = ADDRESS_SPACE - address
            current.data.extend(data[:room])
            address, data = 0, data[room:]

    return regions


def flatten(regions: list[Region], fill: int = 0xFF) -> tuple[int, bytes]:
    """
    Combine regions into one image starting at the lowest base address.

    Gaps between regions are filled with the fill byte.

    Returns:
        (base, image); (0, b"") when there are no regions

    Raises:
        BundleError: If two regions overlap
    """
    if not regions:
        return 0, b""

    ordered = sorted(regions, key=lambda region: region.base)
    base = ordered[0].base
    image = bytearray()

    previous = None
    for region in ordered:
        if previous is not None and region.base < previous.end:
            raise BundleError(
                f"region at ${region.base:04X} overlaps region "
                f"${previous.base:04X}-${previous.end - 1:04X}"
            )
        offset = region.base - base
        image.extend([fill] * (offset - len(image)))
        image.extend(region.data)
        previous = region

    return base, bytes(image)
