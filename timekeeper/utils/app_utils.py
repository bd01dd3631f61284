import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from timekeeper.config import settings
from timekeeper.cron_jobs import BreakSuggestionWatcher
from timekeeper.db import db
from timekeeper.utils.insight_utils import InsightService
from timekeeper.utils.session_utils import SessionStateMachine
from timekeeper.utils.store_utils import LogStore

UTC = timezone.utc

logger = logging.getLogger(__name__)

oauth2_bearer = OAuth2PasswordBearer(tokenUrl="auth/login/")

secret_key = settings.SECRET_KEY
algorithm = settings.ALGORITHM


def create_access_token(payload: Dict[str, Any], expiry: timedelta):
    data_to_encode = {"data": payload}
    expiry_delta = datetime.now(UTC) + expiry
    data_to_encode.update({"exp": expiry_delta})
    encoded_data: str = jwt.encode(data_to_encode, secret_key, algorithm)

    return encoded_data


async def get_current_user(token: str = Depends(oauth2_bearer)) -> str:
    """Returns the user id carried in the token's `data.sub` claim."""
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
        data = payload.get("data")

        if data is None:
            raise HTTPException(status_code=401, detail="Invalid token data.")

        user_id = data.get("sub")
        if not user_id:
            raise HTTPException(status_code=401, detail="Could not validate user.")

        return str(user_id)

    except JWTError as e:
        logger.warning("JWT Error %s", e)
        raise HTTPException(status_code=401, detail="JWT Error - could not validate user.")


def get_store() -> LogStore:
    return LogStore(db)


break_watcher = BreakSuggestionWatcher(get_store)


def get_break_watcher() -> BreakSuggestionWatcher:
    return break_watcher


def get_session_machine(
    user_id: str = Depends(get_current_user),
    store: LogStore = Depends(get_store),
) -> SessionStateMachine:
    return SessionStateMachine(store, user_id)


def get_insight_service() -> InsightService:
    return InsightService()
