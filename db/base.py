import logging
import os

import firebase_admin
from firebase_admin import credentials, firestore_async

from shared.config import SECRETS_DIR

logger = logging.getLogger(__name__)

_db = None


def get_db():
    """Process-wide Firestore AsyncClient, initialised on first use."""
    global _db
    if _db is None:
        if not firebase_admin._apps:
            firebase_path = os.path.join(SECRETS_DIR, "firebase.json")
            cred = credentials.Certificate(firebase_path)
            firebase_admin.initialize_app(cred)
            logger.info("[DB] Firebase app initialised from %s", firebase_path)
        _db = firestore_async.client()
    return _db
