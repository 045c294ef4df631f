import logging
import os

from fastapi import FastAPI

from api.routers import commands, ops, tasks

# Logging configuration
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="tasktalk")

app.include_router(commands.router)
app.include_router(tasks.router)
app.include_router(ops.router)


@app.on_event("startup")
async def startup() -> None:
    logger.info("tasktalk API started with an empty in-memory task list")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
