"""Collects Spotify tracks posted in Slack into a playlist."""

__version__ = "0.1.0"
