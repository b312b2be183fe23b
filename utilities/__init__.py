"""Shared helpers for the Library API."""
