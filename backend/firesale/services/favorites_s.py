from __future__ import annotations

from sqlalchemy.orm import Session, joinedload

from firesale.db.models import Favorite, Item


def toggle_favorite(user_id: str, item_id: int, db: Session) -> dict:
    if db.query(Item.id).filter(Item.id == item_id).first() is None:
        raise LookupError("item not found")

    favorite = (
        db.query(Favorite)
        .filter(Favorite.user_id == user_id, Favorite.item_id == item_id)
        .first()
    )
    if favorite is not None:
        db.delete(favorite)
        db.flush()
        return {"item_id": item_id, "favorite": False}

    db.add(Favorite(user_id=user_id, item_id=item_id))
    db.flush()
    return {"item_id": item_id, "favorite": True}


def list_favorites(user_id: str, db: Session) -> list[dict]:
    rows = (
        db.query(Favorite)
        .options(joinedload(Favorite.item))
        .filter(Favorite.user_id == user_id)
        .order_by(Favorite.created_at.desc(), Favorite.id.desc())
        .all()
    )
    return [
        {
            "item_id": row.item_id,
            "name": row.item.name,
            "store_name": row.item.store_name,
            "discount_price": row.item.discount_price,
            "photo_url": row.item.photo_url,
            "favorited_at": row.created_at,
        }
        for row in rows
    ]
