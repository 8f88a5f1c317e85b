"""Shared helpers used across apps: payload types, boundary serializers, geo utils."""
