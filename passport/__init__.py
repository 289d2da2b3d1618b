"""MongoDB-backed OAuth2 token persistence for the passport service."""
