"""Test factories for dynvars domain models."""
