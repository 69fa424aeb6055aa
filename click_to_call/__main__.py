"""
Entry point for running the click-to-call server.

Usage:
    python -m click_to_call

This starts the FastAPI server on http://0.0.0.0:8000
"""
import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "click_to_call.main:app",
        host="0.0.0.0",
        port=8000,
        log_level="info"
    )
