"""Shared utilities for the billing engine."""
