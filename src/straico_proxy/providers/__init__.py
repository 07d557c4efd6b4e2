"""Upstream providers package."""
