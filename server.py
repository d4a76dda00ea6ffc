import logging
from functools import lru_cache
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from architect import settings
from architect.backend import Backend
from architect.db_connection import DbConnection
from architect.errors import ArchitectError, ValidationError, error_payload

settings.configure_logging()
logger = logging.getLogger("prompt_architect")

app = FastAPI(title="Prompt Architect")

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ArchitectRequest(BaseModel):
    action: Optional[str] = None
    session_id: Optional[str] = None
    project_id: Optional[str] = None
    conversation_id: Optional[str] = None
    user_message: Optional[Any] = None
    collected: Optional[Any] = {}


@lru_cache(maxsize=1)
def get_backend() -> Backend:
    db = DbConnection()
    db.create_all()
    return Backend(session_factory=db.build_db_session_factory())


def _error_response(exc: BaseException) -> JSONResponse:
    status, body = error_payload(exc)
    return JSONResponse(status_code=status, content=body)


@app.post("/prompt-architect")
async def prompt_architect(
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
    backend: Backend = Depends(get_backend),
):
    try:
        try:
            body = ArchitectRequest(**(await request.json()))
        except (ValueError, TypeError, PydanticValidationError) as e:
            raise ValidationError("Invalid request body") from e

        return await backend.process_request(x_user_id, body.model_dump())

    except ArchitectError as e:
        if e.status_code >= 500:
            logger.error("Request failed (%s): %s", e.__class__.__name__, e)
        return _error_response(e)
    except Exception as e:
        logger.exception("Unhandled error while processing request: %s", e)
        return _error_response(e)


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
