"""Core types and exceptions."""
