"""
Public key set, so holders of a token can check its signature offline.
Revocation still requires the server: a verifying token may have been rotated out or logged out.
"""
from fastapi import APIRouter

from runner_auth.keys import get_jwks

router = APIRouter()


@router.get("/.well-known/jwks.json")
def jwks_json():
    return get_jwks()
