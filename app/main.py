# app/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.middleware import RequestIdMiddleware
from app.db import Base, engine
from app.config import settings
from app.services.errors import register_error_handlers
from app.util.logs import configure_logging

from app.routers import orders, coupons, inventory, stock_alerts

configure_logging(settings.LOG_LEVEL)

app = FastAPI(title="Storefront Orders API", version="0.1.0")

@app.on_event("startup")
def init_db():
    Base.metadata.create_all(bind=engine)

register_error_handlers(app)

# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(orders.router)
app.include_router(coupons.router)
app.include_router(inventory.router)
app.include_router(stock_alerts.router)

@app.get("/healthz")
def healthz():
    return {"ok": True}
