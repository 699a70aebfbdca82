# Play Status
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""Value types for jukebox playback state."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class SongRecord:
    """One track as reported by the jukebox."""

    id: str = ""
    name: str = ""
    artist: str = ""
    album: str = ""
    starred: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "artist": self.artist,
            "album": self.album,
            "starred": self.starred,
        }


@dataclass(frozen=True)
class StateUpdate:
    """Snapshot of the currently playing track and the upcoming queue.

    A new snapshot always replaces the previous one as a whole.
    """

    playing: SongRecord
    queued: tuple[SongRecord, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        # Same shape the server sends, so listeners can feed it back to parse_event()
        return {
            "now_playing": self.playing.to_dict(),
            "songs": [song.to_dict() for song in self.queued],
        }
