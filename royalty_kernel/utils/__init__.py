"""Deterministic helpers shared across the kernel."""
