"""
sparkskool/main.py
ASGI entry point: uvicorn sparkskool.main:app --reload
"""
import uvicorn

from sparkskool.api.app import create_app

app = create_app()


if __name__ == "__main__":
    uvicorn.run("sparkskool.main:app", host="0.0.0.0", port=8000)
