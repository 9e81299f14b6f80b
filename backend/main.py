# backend/main.py
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from config import settings
from database import init_db
from services.errors import WarehouseError

# Import routerów
from routes.logs import router as logs_router
from routes.warehouse import router as warehouse_router
from routes.interventions import router as interventions_router
from routes.stock import router as stock_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Inicjalizacja
init_db()

app = FastAPI(title="Maintenance Service API", version="1.0.0")

# CORS Configuration
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
if settings.FRONTEND_URL:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Domain errors -> {"detail", "code", ...}
@app.exception_handler(WarehouseError)
async def _warehouse_error_handler(request: Request, exc: WarehouseError) -> JSONResponse:
    logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Rejestracja routerów
app.include_router(logs_router)
app.include_router(warehouse_router)
app.include_router(interventions_router)

# Rejestracja Stock
app.include_router(stock_router, prefix="/stock")

@app.get("/")
def read_root():
    return {"message": "Maintenance Service API is running"}
