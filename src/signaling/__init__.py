"""Call-signaling relay.

Tracks which identities are reachable, brokers the ring/accept/reject/hangup
lifecycle of one-to-one calls and relays opaque negotiation payloads between
the two parties. Media never passes through this package.
"""
