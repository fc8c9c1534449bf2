"""Default values shared across apikey-gate components."""

from __future__ import annotations

# Header carrying the API key and the literal prefix in front of it.
DEFAULT_HEADER = "Authorization"
DEFAULT_PREFIX = "Bearer "

# Tag name under which an identity's API key is stored.
API_KEY_TAG = "api-key"

# Header carrying the upstream identity token for the bundled claim stage.
DEFAULT_IDENTITY_HEADER = "x-identity-token"

# Paths that bypass the gate when mounted as application middleware.
DEFAULT_EXEMPT_PATHS = frozenset({"/health"})

# Keys under scope["state"] used by the request context.
CLAIMED_IDENTITY_KEY = "claimed_identity"
CALLER_KEY = "caller"
