# pallet_orders/main.py
from fastapi import FastAPI
import uvicorn

from pallet_orders.api import register_api
from pallet_orders.data.database import init_db
from pallet_orders.utils.logging import configure_logging, get_logger

configure_logging()
logger = get_logger(__name__)

init_db()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Pallet Orders",
        version="1.0.0",
    )
    register_api(app)
    logger.info("Pallet Orders API ready")
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
