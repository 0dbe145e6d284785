from fastapi import APIRouter

from studysage.api.auth import router as auth_router
from studysage.api.documents import router as documents_router
from studysage.api.flashcards import router as flashcards_router
from studysage.api.gamification import router as gamification_router
from studysage.api.quizzes import router as quizzes_router

router = APIRouter()
router.include_router(auth_router)
router.include_router(documents_router)
router.include_router(flashcards_router)
router.include_router(quizzes_router)
router.include_router(gamification_router)


@router.get("/health")
async def health_check():
    return {"status": "ok"}
