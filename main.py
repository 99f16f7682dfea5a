"""Launch the pipeline KP FastAPI server."""

import logging

import uvicorn

from pipeline_kp.config import settings


def main():
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(levelname)s | %(name)s | %(message)s",
    )
    uvicorn.run("pipeline_kp.server:app", host="0.0.0.0", port=8000, reload=True)


if __name__ == "__main__":
    main()
