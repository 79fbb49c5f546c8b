import enum
from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.auth import jwt_handler

security = HTTPBearer()


class Role(str, enum.Enum):
    DOCTOR = "doctor"
    PATIENT = "patient"


@dataclass(frozen=True)
class Caller:
    subject_id: str
    role: Role


def get_current_caller(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Caller:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    subject_id = payload.get("sub")
    if not subject_id:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    try:
        role = Role(payload.get("role"))
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Invalid token role") from exc

    return Caller(subject_id=subject_id, role=role)


def require_role(role: Role):
    def dependency(caller: Caller = Depends(get_current_caller)) -> Caller:
        if caller.role != role:
            raise HTTPException(status_code=403, detail=f"Only {role.value}s can perform this action")
        return caller

    return dependency
