"""Lab Interpretation Service entry point."""

import uvicorn

from lab_interpreter.config import settings
from lab_interpreter.main import app  # noqa: F401


if __name__ == "__main__":
    uvicorn.run(
        "lab_interpreter.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.DEBUG,
    )
