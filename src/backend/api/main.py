"""FastAPI application entry point."""

from __future__ import annotations

from fastapi import FastAPI

from api.guardrail import router as guardrail_router


def create_app() -> FastAPI:
    app = FastAPI(
        title="Guardrail API",
        description="Evaluates ordered business rule sets against request datasets.",
        version="1.0.0",
    )
    app.include_router(guardrail_router)

    @app.get("/")
    def root() -> dict:
        return {"message": "Guardrail API", "version": "1.0.0", "docs": "/docs"}

    return app


app = create_app()
