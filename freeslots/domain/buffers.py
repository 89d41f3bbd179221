"""
Buffer directives embedded in event titles.

A title such as ``"Lunch -B15A10"`` asks for 15 minutes of padding before the
event and 10 minutes after it. The marker is advisory metadata only: the
title itself is never altered, and anything that does not parse cleanly is
treated as "no buffer" instead of raising.
"""

import logging
import re

import pendulum

from .models import BufferSpec

logger = logging.getLogger(__name__)


class BufferParser:
    """Extracts ``-B<before>A<after>`` padding (in minutes) from a title."""

    PATTERN = re.compile(r"-B(\d+)A(\d+)")

    def parse(self, title: str | None) -> BufferSpec:
        if not title:
            return BufferSpec.zero()

        match = self.PATTERN.search(title)
        if not match:
            return BufferSpec.zero()

        try:
            return BufferSpec(
                before=pendulum.duration(minutes=int(match.group(1))),
                after=pendulum.duration(minutes=int(match.group(2))),
            )
        except (OverflowError, ValueError):
            # Unrepresentable minute counts, e.g. beyond the int conversion limit
            logger.debug("Ignoring oversized buffer marker in %r", title)
            return BufferSpec.zero()
