"""API key check for state-changing endpoints."""

import hashlib
import hmac
import logging
import os
from functools import wraps
from typing import Set

from flask import jsonify, request

logger = logging.getLogger(__name__)


def configured_key_hashes() -> Set[str]:
    """
    sha256 hashes of the keys listed in API_KEYS (comma-separated).

    read on every request so rotating the environment takes effect without a restart.
    """
    keys = [k.strip() for k in os.getenv("API_KEYS", "").split(",") if k.strip()]
    return {hashlib.sha256(k.encode()).hexdigest() for k in keys}


def require_api_key(f):
    """reject requests without a configured X-API-Key header with 401."""

    @wraps(f)
    def decorated(*args, **kwargs):
        api_key = request.headers.get("X-API-Key")
        if not api_key:
            logger.warning(f"missing api key for {request.method} {request.path} from {request.remote_addr}")
            return jsonify({"error": "Missing API key", "message": "Provide API key in X-API-Key header"}), 401

        key_hash = hashlib.sha256(api_key.encode()).hexdigest()
        if not any(hmac.compare_digest(key_hash, valid) for valid in configured_key_hashes()):
            logger.warning(f"invalid api key for {request.method} {request.path} from {request.remote_addr}")
            return jsonify({"error": "Invalid API key", "message": "The provided API key is not valid"}), 401

        return f(*args, **kwargs)

    return decorated
