"""Shared test fixtures for ndkforge tests."""
