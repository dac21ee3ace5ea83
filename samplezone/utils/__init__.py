"""Shared utilities: errors, logging and configuration."""
