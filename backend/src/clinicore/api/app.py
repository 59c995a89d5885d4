"""FastAPI application."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from clinicore.api.entity_routes import create_entity_router
from clinicore.auth import AuthMiddleware, JWTService
from clinicore.metadata.loader import MetadataLoader
from clinicore.metadata.validator import validate_metadata_dir
from clinicore.persistence import DatabaseConfig, create_database
from clinicore.services import build_services
from clinicore.settings import AppSettings

logger = logging.getLogger(__name__)


def _log_schema_issues(metadata_path: Path) -> None:
    """Validate metadata YAML against the JSON Schema (warn, don't block startup)."""
    issues = validate_metadata_dir(metadata_path)
    if not issues:
        return

    error_count = sum(1 for i in issues if i.severity == "error")
    warn_count = len(issues) - error_count
    for issue in issues:
        if issue.severity == "error":
            logger.error("Metadata schema error: %s", issue)
        else:
            logger.warning("Metadata schema warning: %s", issue)
    logger.warning(
        "Metadata validation: %d error(s), %d warning(s). "
        "Run 'clinicore metadata validate' for details.",
        error_count,
        warn_count,
    )


def _database_config(settings: AppSettings) -> DatabaseConfig:
    if settings.database_url:
        return DatabaseConfig(url=settings.database_url)

    config = DatabaseConfig.from_env(settings.base_path)
    # Ensure parent directory exists for SQLite databases
    if config.is_sqlite and not config.is_memory:
        sqlite_path = config.url.replace("sqlite:///", "", 1)
        Path(sqlite_path).parent.mkdir(parents=True, exist_ok=True)
    return config


def create_app(settings: AppSettings | None = None) -> FastAPI:
    """Build the API. Entity routes are mounted when the lifespan starts."""
    settings = settings or AppSettings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize on startup, cleanup on shutdown."""
        _log_schema_issues(settings.metadata_path)

        loader = MetadataLoader(settings.metadata_path)
        loader.load_all()

        database = create_database(_database_config(settings), loader.entities)
        database.connect()
        database.initialize()

        services = build_services(loader, database)
        for name, service in services.items():
            app.include_router(create_entity_router(loader.entities[name], service))

        app.state.loader = loader
        app.state.database = database
        app.state.services = services
        logger.info(
            "clinicore API ready: %d entities, auth %s",
            len(services),
            "enabled" if settings.auth_required else "disabled",
        )

        yield

        database.close()

    app = FastAPI(title="clinicore API", lifespan=lifespan)
    app.state.settings = settings
    app.state.auth_required = settings.auth_required

    # CORS for frontend dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.auth_required:
        app.add_middleware(AuthMiddleware, jwt_service=JWTService(settings.secret_key))

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/metadata")
    async def list_entities(request: Request) -> dict[str, Any]:
        """List all available entities with their routes and fields."""
        loader: MetadataLoader | None = getattr(request.app.state, "loader", None)
        if not loader:
            raise HTTPException(500, "Metadata loader not initialized")

        entities = []
        for name in loader.list_entities():
            entity = loader.get_entity(name)
            entities.append({
                "name": entity.name,
                "displayName": entity.display_name,
                "pluralName": entity.plural_name,
                "route": f"/api/{entity.route}",
                "primaryKey": entity.primary_key,
                "search": entity.search_fields,
                "fields": [
                    {
                        "name": field.name,
                        "displayName": field.display_name,
                        "type": field.type,
                        "required": field.required,
                        "relation": {
                            "entity": field.relation.entity,
                            "include": field.relation.include,
                            "onDelete": field.relation.on_delete,
                        } if field.relation else None,
                    }
                    for field in entity.fields
                ],
            })

        return {"entities": entities}

    return app
