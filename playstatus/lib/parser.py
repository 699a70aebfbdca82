# Play Status
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Event parsing — raw jukebox payloads to StateUpdate.

Payloads come straight off the wire and are not trusted: keys may be
missing, values may be null or of the wrong type.  parse_event() never
raises; anything it cannot use comes back as None.

Expected shape:

    {
        "now_playing": {"id": "1", "name": "...", "artist": "...",
                        "album": "...", "starred": true},
        "songs": [{...}, {...}]
    }
"""

import logging
from collections.abc import Mapping

from .models import SongRecord, StateUpdate

logger = logging.getLogger(__name__)

NOW_PLAYING_KEY = "now_playing"
SONGS_KEY = "songs"


def _text(record: Mapping, key: str) -> str:
    """Read a string field, falling back to '' for missing or unusable values."""
    value = record.get(key)
    if isinstance(value, str):
        return value
    # Ids sometimes arrive as numbers
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def parse_song(record: Mapping) -> SongRecord:
    """Build a SongRecord from one song mapping, substituting defaults."""
    return SongRecord(
        id=_text(record, "id"),
        name=_text(record, "name"),
        artist=_text(record, "artist"),
        album=_text(record, "album"),
        starred=record.get("starred") is True,
    )


def parse_event(payload) -> StateUpdate | None:
    """Convert an inbound payload to a StateUpdate, or None if not applicable."""
    if not isinstance(payload, Mapping):
        logger.debug("Ignoring non-object event payload: %r", type(payload).__name__)
        return None

    now_playing = payload.get(NOW_PLAYING_KEY)
    if not isinstance(now_playing, Mapping):
        logger.debug("Ignoring event without '%s'", NOW_PLAYING_KEY)
        return None

    songs = payload.get(SONGS_KEY)
    if not isinstance(songs, (list, tuple)):
        logger.debug("Ignoring event without '%s'", SONGS_KEY)
        return None

    queued = tuple(parse_song(song) for song in songs if isinstance(song, Mapping))
    if len(queued) != len(songs):
        logger.debug("Skipped %d malformed queue entries", len(songs) - len(queued))

    return StateUpdate(playing=parse_song(now_playing), queued=queued)
