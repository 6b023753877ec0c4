"""
app/api/dependencies.py

Shared FastAPI dependencies for caller identity and the record store.
"""

from __future__ import annotations

import base64
import binascii
import json

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.domain.energy_entry import Identity
from app.repositories.energy_entry_repository import EnergyEntryRepository, EnergyEntryStore
from db.session import get_db

PRINCIPAL_HEADER = "x-ms-client-principal"


def get_identity(
    principal: str | None = Header(default=None, alias=PRINCIPAL_HEADER),
) -> Identity:
    """
    Read the caller identity the hosting platform already authenticated.

    The platform forwards it as base64-encoded JSON with ``userId`` and
    ``userDetails`` (or ``email``) keys.
    """

    if not principal:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    try:
        payload = json.loads(base64.b64decode(principal, validate=True).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized") from exc

    user_id = payload.get("userId") if isinstance(payload, dict) else None
    if not isinstance(user_id, str) or not user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    return Identity(
        id=user_id.strip(),
        email=payload.get("email") or payload.get("userDetails"),
    )


def get_energy_entry_store(db: Session = Depends(get_db)) -> EnergyEntryStore:
    """
    Energy entry store bound to the request's database session.
    """

    return EnergyEntryRepository(db)
