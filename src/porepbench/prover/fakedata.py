"""Synthetic piece data for benchmark runs."""

import logging
import random
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

_WRITE_CHUNK = 1 << 20


def create_fake_data_file(path: Union[str, Path], size: int, rng: Optional[random.Random] = None) -> Path:
    """Write `size` pseudo-random bytes to path, streaming in 1 MiB chunks."""
    rng = rng or random.Random()
    out = Path(path)
    remaining = size
    with open(out, "wb") as f:
        while remaining > 0:
            n = min(_WRITE_CHUNK, remaining)
            f.write(rng.randbytes(n))
            remaining -= n
    logger.info("Created fake data file %s (%d bytes)", out, size)
    return out
