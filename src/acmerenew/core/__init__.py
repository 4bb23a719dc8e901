"""Core types, errors, state machines and JWS helpers."""
