"""Configurable matching policies."""
from enum import Enum


class DuplicateMatchPolicy(str, Enum):
    """What to do when a photo is matched to a person who already has a match on it.

    KEEP_HIGHEST keeps one row per (photo, person), replaced only by a strictly
    more confident match. ALLOW inserts a new row every time.
    """
    KEEP_HIGHEST = "keep_highest"
    ALLOW = "allow"


class RecordFailurePolicy(str, Enum):
    """How a batch reacts when recording one detection's match fails.

    COLLECT returns the partial successes with the failures listed. ABORT raises
    once every detection has settled; matches already recorded are kept.
    """
    COLLECT = "collect"
    ABORT = "abort"
