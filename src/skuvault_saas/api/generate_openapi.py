"""Write the OpenAPI document to interfaces/openapi.json (all REST routes are under /api/v1)."""
import json
import os

from skuvault_saas.api.main import app
from skuvault_saas.core.settings import get_app_settings


def build_schema() -> dict:
    """OpenAPI document for the app, with the session cookie listed as a security scheme."""
    openapi_schema = app.openapi()

    # Document the session cookie alongside the bearer scheme FastAPI already emits
    components = openapi_schema.setdefault("components", {})
    components.setdefault("securitySchemes", {})["SessionCookie"] = {
        "type": "apiKey",
        "in": "cookie",
        "name": get_app_settings().SESSION_COOKIE_NAME,
    }
    return openapi_schema


def main(output_dir: str = "interfaces") -> str:
    os.makedirs(output_dir, exist_ok=True)
    output_path = os.path.join(output_dir, "openapi.json")

    with open(output_path, "w") as f:
        json.dump(build_schema(), f, indent=2)
    return output_path


if __name__ == "__main__":
    main()
