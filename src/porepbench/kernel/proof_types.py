"""Registered seal proof types and sector size arithmetic."""

import logging
from enum import IntEnum

logger = logging.getLogger(__name__)

KIB = 1 << 10
MIB = 1 << 20
GIB = 1 << 30


class ProofType(IntEnum):
    """Registered seal proof, numbered like the Filecoin actors ABI."""
    STACKED_DRG_2KIB_V1 = 0
    STACKED_DRG_8MIB_V1 = 1
    STACKED_DRG_512MIB_V1 = 2
    STACKED_DRG_32GIB_V1 = 3

    def sector_size(self) -> int:
        """Padded sector size in bytes."""
        return _SECTOR_SIZES[self]

    def sector_size_label(self) -> str:
        """Short human label of the sector size, e.g. '2KiB'."""
        return short_size_label(self.sector_size())


_SECTOR_SIZES = {
    ProofType.STACKED_DRG_2KIB_V1: 2 * KIB,
    ProofType.STACKED_DRG_8MIB_V1: 8 * MIB,
    ProofType.STACKED_DRG_512MIB_V1: 512 * MIB,
    ProofType.STACKED_DRG_32GIB_V1: 32 * GIB,
}

# CLI labels -> proof type
_LABELS = {
    "2K": ProofType.STACKED_DRG_2KIB_V1,
    "8M": ProofType.STACKED_DRG_8MIB_V1,
    "512M": ProofType.STACKED_DRG_512MIB_V1,
    "32G": ProofType.STACKED_DRG_32GIB_V1,
}

DEFAULT_PROOF_TYPE = ProofType.STACKED_DRG_2KIB_V1


def short_size_label(size: int) -> str:
    """Render a byte count with the largest exact binary unit (2048 -> '2KiB')."""
    for unit, suffix in ((GIB, "GiB"), (MIB, "MiB"), (KIB, "KiB")):
        if size >= unit and size % unit == 0:
            return f"{size // unit}{suffix}"
    return f"{size}B"


def unpadded_space(size: int) -> int:
    """Usable piece capacity of a padded sector (one byte in 128 goes to Fr32 padding)."""
    return size - size // 128


def parse_proof_type(label: str) -> ProofType:
    """Map a CLI size label to its proof type.

    Unknown labels fall back to the smallest supported size with a warning.
    """
    key = label.strip().upper()
    if key in _LABELS:
        return _LABELS[key]
    logger.warning("Unknown sector size %s, replaced with 2K as input", label)
    return DEFAULT_PROOF_TYPE


def supported_labels() -> list[str]:
    return list(_LABELS)
