"""Caller-facing surfaces for the credential broker."""
