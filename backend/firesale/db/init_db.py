from __future__ import annotations

from firesale.db.models import Base
from firesale.db.session import engine


def init_db() -> None:
    Base.metadata.create_all(bind=engine)


if __name__ == "__main__":
    init_db()
    print("Firesale tables initialized.")
