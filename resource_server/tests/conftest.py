"""
Pytest configuration for resource_server.
Verification secret is set before resource_server.config is imported.
"""
import os

os.environ["OAUTH_JWT_SECRET"] = "test-signing-secret-0123456789abcdef"
for _name in ("OAUTH_ISSUER", "OAUTH_ACCESS_TOKEN_SECRET", "OAUTH_ACCESS_TOKEN_AUDIENCE"):
    os.environ.pop(_name, None)
