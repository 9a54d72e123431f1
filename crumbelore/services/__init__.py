"""Crumbelore - Services Package

This package contains service modules for talking to the backend:
- HTTP client abstraction
- Background catalog/reservation sync
"""
