"""Claw Activity Stream.

Tails agent runtime logs and session files, turns them into activity
events and relays them to a Discord channel with rate limiting.
"""

__version__ = "0.2.0"
