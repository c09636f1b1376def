"""Providers, chat flow and shared result types."""
