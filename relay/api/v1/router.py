from fastapi import APIRouter

from relay.api.v1.completions import router as completions_router
from relay.api.v1.embeddings import router as embeddings_router
from relay.api.v1.models import router as models_router

api_v1_router = APIRouter(prefix="/v1")
api_v1_router.include_router(completions_router)
api_v1_router.include_router(embeddings_router)
api_v1_router.include_router(models_router)
