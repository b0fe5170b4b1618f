"""Core types and helpers shared across blueprints."""
