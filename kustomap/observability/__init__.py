"""Logging and metrics for kustomap."""
