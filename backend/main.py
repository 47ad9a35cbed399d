# backend/main.py
import logging
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from config import settings
from database import init_db

# Router imports
from routes.auth import router as auth_router
from routes.users import router as users_router
from routes.stocks import router as stocks_router
from routes.categories import router as categories_router
from routes.orders import router as orders_router
from routes.invoices import router as invoices_router
from routes.logs import router as logs_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Initialisation
init_db()

app = FastAPI(title="Stockroom API", version="1.0.0")

# Uploaded images are served from the public directory
Path(settings.PUBLIC_DIR, "uploads").mkdir(parents=True, exist_ok=True)
app.mount("/public", StaticFiles(directory=settings.PUBLIC_DIR), name="public")

# CORS Configuration
origins = ["http://localhost:5173", "http://127.0.0.1:5173"]
if settings.FRONTEND_URL:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Router registration
app.include_router(stocks_router)
app.include_router(categories_router)
app.include_router(orders_router)
app.include_router(invoices_router)
app.include_router(logs_router)
app.include_router(auth_router)
app.include_router(users_router)

@app.get("/")
def read_root():
    return {"message": "Stockroom API is running"}
