from app.db import models
from app.db.init_db import seed_default_catalog
from app.db.session import SessionLocal, engine


def main() -> None:
    models.Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        response_type = seed_default_catalog(db)
        labels = ", ".join(option.label for option in response_type.options)
        print(f"Tipo de resposta {response_type.name}: {labels}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
