"""Kernel services: audit trail, unit of work, current-user resolution."""
