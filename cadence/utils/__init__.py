"""Utility helpers shared across Cadence modules."""
