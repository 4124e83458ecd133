from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from thesis_check.logger import get_logger
from thesis_check.routers.analysis import router as analysis_router

logger = get_logger(__name__)

app = FastAPI(title="thesis-check")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(analysis_router)


@app.get("/")
async def root():
    return {"service": "thesis-check", "status": "ok"}
