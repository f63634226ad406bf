# civic_hierarchy/main.py
from fastapi import FastAPI
from contextlib import asynccontextmanager
from beanie import init_beanie

import logging

from civic_hierarchy.configs import env, configs
from civic_hierarchy.models.content import Content
from civic_hierarchy.models.hierarchy import HierarchyNode
from civic_hierarchy.models.user import User
from civic_hierarchy.routes import auth, content, hierarchy, users
from civic_hierarchy.services.db import close_database_client, get_database_client
from fastapi.middleware.cors import CORSMiddleware

app_configs = configs.get("app", {})
logging_configs = configs.get("logging", {})

# Configure logging
logging.basicConfig(
    level=logging_configs.get("level", "INFO"),
    format=logging_configs.get(
        "format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    ),
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handles startup and shutdown events for the application.
    Connects to MongoDB and initializes Beanie ODM.
    """
    logger.info("Application startup initiated...")
    try:
        client = await get_database_client()
        await init_beanie(
            database=client[env.get("MONGO_DB")],
            document_models=[User, HierarchyNode, Content],
        )
        logger.info("MongoDB connection and Beanie initialization successful.")
    except Exception as e:
        logger.error(f"Failed to connect to MongoDB or initialize Beanie: {e}")
        raise

    yield

    logger.info("Application shutdown initiated...")
    await close_database_client()
    logger.info("MongoDB connection closed.")


app = FastAPI(
    title=env.get("APP_NAME") or app_configs.get("project_name"),
    debug=app_configs.get("debug_mode"),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_configs.get("cors_origins", []),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(hierarchy.router, prefix="/hierarchy", tags=["Hierarchy"])
app.include_router(content.router, prefix="/content", tags=["Content"])


@app.get("/")
async def read_root():
    return {"message": f"{app.title} is running"}
