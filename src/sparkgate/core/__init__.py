"""Core building blocks: config, logging, exceptions and shared types."""
