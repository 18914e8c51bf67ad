"""Relay service application."""
