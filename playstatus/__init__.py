"""
Play Status — background subscription client for a shared jukebox.

Tracks what the jukebox is playing and what is queued, re-broadcasts every
update inside the process and keeps a persistent status line up to date.
"""

__version__ = "0.1.0"
