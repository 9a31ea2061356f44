"""
Credential encryption for stored platform integrations
"""

import base64
import hashlib
import json
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from .config import SECRET_KEY

logger = logging.getLogger(__name__)

# Fernet needs 32 url-safe base64 bytes; derive them from SECRET_KEY
cipher_suite = Fernet(base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest()))


def encrypt_credentials(credentials: Optional[dict]) -> Optional[str]:
    """Encrypt a credentials dict for storage"""
    if not credentials:
        return None
    return cipher_suite.encrypt(json.dumps(credentials).encode()).decode()


def decrypt_credentials(encrypted: Optional[str]) -> dict:
    """Decrypt stored credentials; unreadable values yield an empty dict"""
    if not encrypted:
        return {}
    try:
        return json.loads(cipher_suite.decrypt(encrypted.encode()).decode())
    except (InvalidToken, ValueError) as e:
        logger.error(f"❌ Failed to decrypt integration credentials: {e}")
        return {}

