"""Kernel services: the store boundary and the process-wide cache."""
