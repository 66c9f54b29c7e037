"""Core configuration, secure storage and signing primitives."""
