from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.base_database import BaseDatabase
from core.db.mongodb import MongoDBClient
from core.loader import auto_load_all
from core.logger import Logger, setup_logging
from core.registry import ServiceRegistry

# Initialize logger before anything else
setup_logging()

app_logger = Logger(__name__)
app_logger.info("Logger initialized successfully.")

# establish database connections
mongodb = MongoDBClient()
BaseDatabase.init_databases(mongodb)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app_logger.info("Starting up application...")
    await mongodb.init()
    auto_load_all()

    # Register routers after auto_load_all() populates ServiceRegistry
    for router in ServiceRegistry.get_all_apis():
        app.include_router(router)
        app_logger.info(f"Registered API router: {router.prefix}")

    yield
    app_logger.info("Shutting down application...")


app = FastAPI(title="Churn Analytics", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    return {"status": "ok"}
