"""Shared helpers: exceptions, logging, number and time formatting."""
