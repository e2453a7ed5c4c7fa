"""Hushnet server - Starlette API for the node registry."""
