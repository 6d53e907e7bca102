from __future__ import annotations

import logging
import time
from typing import Optional

import jwt
from flask import current_app, request


def issue_session_token(participant_id: str, code: str) -> str:
    """Sign an opaque participant id to a room code. Identity only, not authentication."""
    payload = {
        "sub": str(participant_id),
        "room": code,
        "exp": int(time.time()) + int(current_app.config["ACCESS_TOKEN_EXPIRES"]),
    }
    return jwt.encode(payload, current_app.config["JWT_SECRET"], algorithm="HS256")


def decode_session_token(token: Optional[str]) -> Optional[dict]:
    if not token:
        return None
    try:
        return jwt.decode(token, current_app.config["JWT_SECRET"], algorithms=["HS256"])
    except jwt.InvalidTokenError as e:
        logging.warning("decode_session_token: rejected token: %s", e)
        return None


def get_session_from_socket() -> tuple[Optional[str], Optional[str]]:
    """(room code, participant id) from the ``token`` query arg of the socket connection."""
    payload = decode_session_token(request.args.get("token"))
    if not payload:
        return None, None
    return payload.get("room"), payload.get("sub")


def get_session_from_auth_header() -> tuple[Optional[str], Optional[str]]:
    auth = request.headers.get("Authorization", "")
    if not auth.lower().startswith("bearer "):
        return None, None
    payload = decode_session_token(auth.split(" ", 1)[1].strip())
    if not payload:
        return None, None
    return payload.get("room"), payload.get("sub")
