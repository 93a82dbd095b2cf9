"""Persistence package: exposes the process-wide DBStorage as models.storage."""
from models.db_storage import DBStorage

storage = DBStorage()
