from .firebase_config import (
    initialize_firebase,
    get_firestore_client,
    verify_firebase_token,
    get_user_claims,
)

__all__ = [
    "initialize_firebase",
    "get_firestore_client",
    "verify_firebase_token",
    "get_user_claims",
]
