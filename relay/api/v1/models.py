"""Static model catalog."""

from fastapi import APIRouter

from relay.schemas.openai import ModelCard, ModelList, ModelPermission

router = APIRouter(tags=["models"])

MODEL_CATALOG = ModelList(
    data=[
        ModelCard(
            id="gpt-3.5-turbo",
            created=1677610602,
            permission=[
                ModelPermission(
                    id="modelperm-M56FXnG1AsIr3SXq8BYPvXJA",
                    created=1679602088,
                ),
            ],
            root="gpt-3.5-turbo",
        ),
    ]
)


@router.get("/models", response_model=ModelList)
async def list_models():
    return MODEL_CATALOG
