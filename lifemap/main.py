"""Entry point for running the FastAPI application."""

import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

if __name__ == "__main__":
    # Read port from environment variable, default to 8000 (matches LIFEMAP_API_URL)
    port = int(os.getenv("PORT", "8000"))

    uvicorn.run(
        "lifemap.src.api.main:app",
        host="0.0.0.0",
        port=port,
        reload=True,
    )
