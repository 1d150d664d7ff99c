# src/main.py
# Главная точка входа FastAPI для Splitwise-клона: авторизация через Telegram,
# друзья, группы, расходы с делением, settle-up и дашборд балансов.

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src import config
from src.db import database

from src.routers.auth import router as auth_router
from src.routers.users import router as users_router
from src.routers.friends import router as friends_router
from src.routers.groups import router as groups_router
from src.routers.expenses import router as expenses_router
from src.routers.settlements import router as settlements_router
from src.routers.dashboard import router as dashboard_router
from src.routers.events import router as events_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

app = FastAPI(
    title="Splitto Backend",
    description="Делёж расходов между друзьями: доли, балансы, settle-up.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count"],
)

# --- Подключение роутеров ---
app.include_router(auth_router,         prefix="/api/auth",        tags=["Авторизация"])
app.include_router(users_router,        prefix="/api/users",       tags=["Пользователи"])
app.include_router(friends_router,      prefix="/api/friends",     tags=["Друзья"])
app.include_router(groups_router,       prefix="/api/groups",      tags=["Группы"])
app.include_router(expenses_router,     prefix="/api/expenses",    tags=["Расходы"])
app.include_router(settlements_router,  prefix="/api/settlements", tags=["Settle-up"])
app.include_router(dashboard_router,    prefix="/api/dashboard",   tags=["Дашборд"])
# роутер событий уже имеет prefix="/events"
app.include_router(events_router,       prefix="/api",             tags=["События"])


@app.get("/")
def root():
    """Простой healthcheck."""
    return {"message": "Splitto backend работает!", "docs": "/docs"}


@app.on_event("shutdown")
def _dispose_db():
    if database.initialized:
        database.dispose()
        log.info("database engine disposed")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("src.main:app", host="0.0.0.0", port=8000, reload=False)
