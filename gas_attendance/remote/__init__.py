"""Remote sheet endpoint access (transport, request cache, cached API)."""
