"""Negotiation protocol: transcript store, state machine, realtime sync, screen controller."""
