"""Offline tooling for the N-body simulation."""
