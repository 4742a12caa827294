"""Duochat: anonymous one-to-one matchmaking and relay service."""
