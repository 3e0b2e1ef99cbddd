"""
Resource Server (Protected API).
Bearer access tokens from the Authorization Server; /api/users needs read:users, /api/products is public.
Port 5000.
"""
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from auth_server.errors import install_error_handlers
from resource_server.auth import RequireReadUsers
from resource_server.data import USERS, find_user, list_products

app = FastAPI(title="Resource Server", version="1.0.0")
install_error_handlers(app)


@app.exception_handler(404)
async def not_found(request: Request, exc: HTTPException):
    if isinstance(getattr(exc, "detail", None), dict):
        return JSONResponse(exc.detail, status_code=404)
    return JSONResponse({"error": "not_found", "path": request.url.path}, status_code=404)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/api/users")
def users(claims: dict = RequireReadUsers):
    """Requires scope read:users."""
    return {"data": USERS}


@app.get("/api/users/{user_id}")
def user_by_id(user_id: str, claims: dict = RequireReadUsers):
    """Requires scope read:users."""
    user = find_user(user_id)
    if user is None:
        raise HTTPException(
            status_code=404,
            detail={"error": "not_found", "error_description": "User not found", "id": user_id},
        )
    return {"data": user}


@app.get("/api/products")
def products(limit: int | None = None):
    """Public endpoint; optional limit."""
    return {"data": list_products(limit)}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "resource_server.main:app",
        host="127.0.0.1",
        port=5000,
        reload=True,
    )
