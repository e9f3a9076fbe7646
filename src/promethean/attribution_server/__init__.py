"""Promethean Attribution Server - FastAPI service over the attribution engine."""
