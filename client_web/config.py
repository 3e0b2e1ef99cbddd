"""
Client Web configuration (the confidential "learning-client").
"""
import os

# Authorization Server (issuer): where we send the browser and exchange codes
ISSUER = os.environ.get("OAUTH_ISSUER", "http://localhost:4000").rstrip("/")

# Our client credentials (must be registered at the AS)
CLIENT_ID = os.environ.get("OAUTH_CLIENT_ID", "learning-client")
CLIENT_SECRET = os.environ.get("OAUTH_CLIENT_SECRET", "learning-client-secret")

# Callback URL where the AS redirects after consent; exact match with the registration
REDIRECT_URI = os.environ.get("OAUTH_REDIRECT_URI", "http://localhost:3000/callback")

DEFAULT_SCOPE = os.environ.get("OAUTH_SCOPE", "read:users read:products openid profile email")

# Resource Server base URL
RESOURCE_SERVER_URL = os.environ.get("OAUTH_RESOURCE_SERVER_URL", "http://localhost:5000").rstrip("/")

HTTP_TIMEOUT = float(os.environ.get("OAUTH_HTTP_TIMEOUT", "10"))
