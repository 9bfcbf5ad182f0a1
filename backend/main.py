from fastapi.openapi.utils import get_openapi
from dotenv import load_dotenv

load_dotenv()

from app.main import app  # noqa: E402


def dispute_openapi() -> dict:
    """OpenAPI schema for the dispute service, tagged by route group."""
    if app.openapi_schema:
        return app.openapi_schema
    app.openapi_schema = get_openapi(
        title="Cleaning Home Size Disputes API",
        version="1.0.0",
        description="Report, review and resolve home size discrepancies on cleaning appointments.",
        routes=app.routes,
        tags=[
            {"name": "home-size-disputes", "description": "Dispute lifecycle and role-scoped views."},
            {"name": "health", "description": "Liveness probe."},
        ],
    )
    return app.openapi_schema


app.openapi = dispute_openapi

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000)
