"""External services: the Pleesher API transport."""

from pleesher.infrastructure.external.oauth2_client import OAuth2Client, encode_params

__all__ = [
    "OAuth2Client",
    "encode_params",
]
