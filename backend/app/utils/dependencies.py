from fastapi import HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from app.utils.security import decode_access_token


bearer_scheme = HTTPBearer()


def get_current_user(token: HTTPAuthorizationCredentials = Security(bearer_scheme)) -> dict:
    try:
        payload = decode_access_token(token.credentials)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return {"_id": user_id}
