import os
import firebase_admin
from firebase_admin import credentials, firestore_async, auth
from typing import Optional
import logging

logger = logging.getLogger(__name__)

# Global Firestore client, created on first use
_firestore_client = None


def initialize_firebase():
    """Initialize Firebase Admin SDK"""
    global _firestore_client

    try:
        if not firebase_admin._apps:
            # Get Firebase credentials
            cred_path = os.getenv("FIREBASE_CREDENTIALS_PATH")
            if cred_path and os.path.exists(cred_path):
                # Use service account key file
                cred = credentials.Certificate(cred_path)
            else:
                # Use default credentials (for production with service account)
                cred = credentials.ApplicationDefault()

            firebase_admin.initialize_app(cred)
            logger.info("Firebase initialized successfully")
        else:
            logger.info("Firebase already initialized")

        if _firestore_client is None:
            _firestore_client = firestore_async.client()

    except Exception as e:
        logger.error(f"Failed to initialize Firebase: {e}")
        raise


def get_firestore_client():
    """Get the async Firestore client instance"""
    if _firestore_client is None:
        initialize_firebase()

    return _firestore_client


def verify_firebase_token(token: str) -> dict:
    """Verify Firebase ID token and return its decoded claims"""
    if not firebase_admin._apps:
        initialize_firebase()
    try:
        return auth.verify_id_token(token)
    except Exception as e:
        logger.error(f"Token verification failed: {e}")
        raise


def get_user_claims(uid: str) -> Optional[dict]:
    """Get profile fields and custom claims for a Firebase user"""
    if not firebase_admin._apps:
        initialize_firebase()
    try:
        user_record = auth.get_user(uid)
    except auth.UserNotFoundError:
        return None
    return {
        "uid": user_record.uid,
        "email": user_record.email,
        "display_name": user_record.display_name,
        **(user_record.custom_claims or {}),
    }
