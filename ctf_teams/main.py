# ctf_teams/main.py

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import os
import logging

# Роутеры
from ctf_teams.api.events import router as events_router
from ctf_teams.api.invitation import router as invitation_router
from ctf_teams.api.join_request import router as join_request_router
from ctf_teams.api.team import router as team_router

from ctf_teams.core.settings import settings
from ctf_teams.core.exceptions import TeamLifecycleError
from ctf_teams.schemas.response import ErrorDetail, ErrorResponse

# Логирование
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("CTFTeams.API")

app = FastAPI(
    title="CTF Teams API",
    version="1.0.0",
    description="Team formation and membership lifecycle for CTF events",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(events_router, prefix=settings.API_V1_STR)
app.include_router(team_router, prefix=settings.API_V1_STR)
app.include_router(join_request_router, prefix=settings.API_V1_STR)
app.include_router(invitation_router, prefix=settings.API_V1_STR)

# Health check & root
@app.get("/", tags=["Health"])
def root():
    return {"status": "CTF Teams API is running!"}

@app.get("/health", tags=["Health"])
def health():
    return {"ok": True}

@app.exception_handler(TeamLifecycleError)
async def team_lifecycle_exception_handler(request: Request, exc: TeamLifecycleError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}")
    body = ErrorResponse(error=ErrorDetail(**exc.to_dict()))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "ctf_teams.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=settings.DEBUG,
    )
