# file: main.py

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from app.controllers.notification import router as notification_router
from app.controllers.push import router as push_router
from app.database.connection import init_db

load_dotenv()
logging.basicConfig(level=logging.INFO)

app = FastAPI(title="NZ Sports Club Notifications API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(notification_router, prefix="/api/notifications", tags=["notifications"])
app.include_router(push_router, prefix="/api/push", tags=["push"])


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.get("/")
async def root():
    return {"message": "NZ Sports Club Notifications API is running"}


@app.on_event("startup")
async def startup_event():
    await init_db()
