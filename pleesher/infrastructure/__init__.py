"""Infrastructure: cache backends, persistence, session stores, remote API."""
