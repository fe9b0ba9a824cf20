"""
Auth Hooks Backend
FastAPI application for Supabase Auth email hooks and OAuth callbacks.
"""

import logging

from fastapi import FastAPI

from authhooks.routers import auth_hooks, oauth_callback

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Auth Hooks API",
    description="Auth email normalization, localized dispatch and resilient OAuth completion",
    version="0.1.0",
)

# Include routers
app.include_router(auth_hooks.router, prefix="/api/auth/hooks", tags=["auth-hooks"])
app.include_router(oauth_callback.router, prefix="/auth", tags=["oauth"])


@app.get("/")
async def root():
    return {"message": "Auth Hooks API", "version": "0.1.0"}


@app.get("/health")
async def health():
    return {"status": "ok"}
