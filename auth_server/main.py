"""
Authorization Server (OIDC Provider).
Login + consent, authorization codes with PKCE, token endpoint, discovery and userinfo.
Port 4000.
"""
from fastapi import FastAPI

from auth_server.authorize import router as authorize_router
from auth_server.errors import install_error_handlers
from auth_server.services import AuthServices, build_services
from auth_server.token_endpoint import router as token_router
from auth_server.userinfo import router as userinfo_router
from auth_server.well_known import router as well_known_router


def create_app(services: AuthServices | None = None) -> FastAPI:
    """Build the app around the given registries (or fresh ones configured from env)."""
    app = FastAPI(title="Auth Server", version="1.0.0")
    app.state.services = services if services is not None else build_services()
    install_error_handlers(app)
    app.include_router(authorize_router, tags=["authorize"])
    app.include_router(token_router, tags=["token"])
    app.include_router(userinfo_router, tags=["userinfo"])
    app.include_router(well_known_router, tags=["well-known"])

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "auth_server.main:app",
        host="127.0.0.1",
        port=4000,
        reload=True,
    )
