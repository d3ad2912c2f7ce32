from lobbycord.database.database import Database, resolve_db_path

__all__ = ["Database", "resolve_db_path"]
