"""Request-scoped services for the deletion impact API."""
