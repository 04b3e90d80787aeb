"""Delivery lifecycle orchestrator."""
