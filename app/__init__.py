"""
FastAPI Application Package

This package contains the FastAPI application factory and routes.
It serves as the entry point for the backend API, providing REST endpoints
for cached token prices and price history.
"""
