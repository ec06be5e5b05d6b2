"""Capability linking, health scoring and evolution tracking."""
