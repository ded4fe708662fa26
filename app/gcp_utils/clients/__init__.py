"""Adapters binding the resilience engines to Google Cloud client SDKs."""
