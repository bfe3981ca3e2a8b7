from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from firesale.dependencies.auth_d import get_current_user_id
from firesale.dependencies.db_d import get_db, get_db_transactional
from firesale.errors import raise_http_error_from_exception
from firesale.services.favorites_s import list_favorites, toggle_favorite

router = APIRouter()


@router.get("/favorites")
def get_favorites(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return {"data": list_favorites(user_id, db)}


@router.post("/favorites/{item_id}/toggle")
def toggle_favorite_endpoint(
    item_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db_transactional),
):
    try:
        result = toggle_favorite(user_id, item_id, db)
    except Exception as exc:
        raise_http_error_from_exception(exc, db=db)
    return {"data": result}
