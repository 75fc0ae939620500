from sqlalchemy import inspect, text
from recipe_social.db.session import engine, Base

# Import all models before create_all
from recipe_social.models import (  # noqa: F401
    user, follow, conversation, message, notification, user_preference, recipe,
)
from recipe_social.utils.logger import safe_print


def create_missing_tables(bind=engine):
    safe_print("Creating missing tables...")
    Base.metadata.create_all(bind=bind)
    safe_print("Tables created successfully (if missing).")


def add_missing_columns(bind=engine):
    """
    Add columns that exist on the models but not yet in the database.
    Returns the list of "table.column" names that were added.
    """
    added = []
    inspector = inspect(bind)
    existing_tables = inspector.get_table_names()
    with bind.connect() as conn:
        for table_name, model_table in Base.metadata.tables.items():
            if table_name not in existing_tables:
                safe_print(f"Table {table_name} not found in DB, creating it...")
                model_table.create(bind=bind, checkfirst=True)
                continue
            existing_cols = {col["name"] for col in inspector.get_columns(table_name)}
            for col_name, col in model_table.columns.items():
                if col_name in existing_cols:
                    continue
                sql = f'ALTER TABLE "{table_name}" ADD COLUMN "{col_name}" {col.type.compile(bind.dialect)}'
                safe_print(f"Adding column {table_name}.{col_name}")
                conn.execute(text(sql))
                conn.commit()
                added.append(f"{table_name}.{col_name}")
    return added


if __name__ == "__main__":
    safe_print("Syncing database...")
    create_missing_tables()
    add_missing_columns()
    safe_print("Database sync complete.")
