"""
Block clock shared by contracts.

The block number is the admission unit: everything that happens before
``mine()`` is called observes the same height.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class BlockContext:
    """Current block height and timestamp as seen by contracts."""

    block_number: int = 1
    timestamp: float = field(default_factory=time.time)

    def mine(self, blocks: int = 1) -> int:
        """Advance the chain by ``blocks`` blocks and return the new height."""
        if blocks < 1:
            raise ValueError("Must mine at least one block")
        self.block_number += blocks
        self.timestamp = time.time()
        logger.debug(
            "Block mined",
            extra={"event": "chain.block_mined", "height": self.block_number},
        )
        return self.block_number
