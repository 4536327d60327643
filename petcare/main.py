import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from petcare.core import config
from petcare.database import create_schema
from petcare.routes import auth_routes, booking_routes

logging.basicConfig(level=config.LOG_LEVEL)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        create_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL.')


@app.get('/')
def root():
    return {'status': 'Pet Care Booking API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(booking_routes.router, prefix='/booking')
