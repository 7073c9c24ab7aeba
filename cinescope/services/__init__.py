"""Catalog clients and view services."""
