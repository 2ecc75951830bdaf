import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select
from app.config import ADMIN_EMAIL, ADMIN_PASSWORD, LOG_FORMAT, LOG_LEVEL
from app.database import create_db_and_tables, engine, store_error
from app.auth import create_user
from app.errors import InternalError, ServiceError
from app.models import User

logger = logging.getLogger("teamslots")


def ensure_admin():
    """Create the bootstrap operator account if configured and missing."""
    if not ADMIN_EMAIL or not ADMIN_PASSWORD:
        return
    email = ADMIN_EMAIL.strip().lower()
    with Session(engine) as db:
        admin_user = db.exec(select(User).where(User.email == email)).first()
        if not admin_user:
            create_user(db, ADMIN_EMAIL, "admin", ADMIN_PASSWORD, is_admin=True)
            logger.info("Created admin account %s", ADMIN_EMAIL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    create_db_and_tables()
    ensure_admin()
    yield


app = FastAPI(
    title="Team Slots",
    description="Form teams of up to eight and reserve exclusive time slots",
    version="1.0.0",
    lifespan=lifespan
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    message = exc.message
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
        if not exc.retryable:
            message = InternalError.message
    else:
        logger.warning("%s %s: %s", request.method, request.url.path, exc.message)

    return JSONResponse(
        status_code=exc.status_code,
        content={"status": "error", "code": exc.code, "message": message}
    )


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    """Store failures outside a unit of work, such as the login lookup."""
    error = store_error(exc)
    error.__cause__ = exc
    return await service_error_handler(request, error)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning("%s %s: invalid request body", request.method, request.url.path)
    return JSONResponse(
        status_code=400,
        content={
            "status": "error",
            "code": "validation_error",
            "message": "Invalid request",
            "errors": jsonable_encoder([
                {"loc": error["loc"], "msg": error["msg"], "type": error["type"]}
                for error in exc.errors()
            ])
        }
    )


# Include routers
from app.routers import admin, auth, slots, teams, users

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(teams.router)
app.include_router(slots.router)
app.include_router(admin.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
