from fastapi import FastAPI
import uvicorn
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from core.logging_config import configure_logging
from db.database import create_db_and_tables, engine
from db.migrations import ensure_reconciliation_constraints
from routers.csv_uploads import router as csv_router
from routers.periods import router as periods_router
from routers.pos import router as pos_router
from routers.variance import router as variance_router

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_db_and_tables()
    await ensure_reconciliation_constraints(engine)
    yield


app = FastAPI(
    title="Inventory Variance API",
    description="Inventory usage variance and multi-source reconciliation",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Period lifecycle, snapshots and ledger
app.include_router(periods_router, prefix="/periods", tags=["periods"])

# Usage calculation and investigations
app.include_router(variance_router, prefix="/variance", tags=["variance"])

# Tier 2 reconciliation sources
app.include_router(pos_router, prefix="/pos", tags=["pos"])
app.include_router(csv_router, prefix="/csv", tags=["csv"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
