import os

import uvicorn

from pdf_quickbooks.app import create_app
from pdf_quickbooks.core.settings import get_env_int
from pdf_quickbooks.logger import get_logging_config

app = create_app()


def main() -> None:
    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=get_env_int("PORT", 8000, min_value=1),
        log_config=get_logging_config(),
    )


if __name__ == "__main__":
    main()
