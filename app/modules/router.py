# app/modules/router.py
from fastapi import APIRouter
from app.modules.docintake.api.router import router as docintake_router

router = APIRouter()
router.include_router(docintake_router)
