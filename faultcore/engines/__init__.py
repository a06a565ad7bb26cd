"""Engines that consume the cache layer."""
