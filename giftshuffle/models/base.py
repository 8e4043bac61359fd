from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import DeclarativeBase

from giftshuffle.db.metadata import metadata_obj

# Primary and foreign key type. SQLite only autoincrements INTEGER keys.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """Declarative base bound to the shared naming-convention metadata."""

    metadata = metadata_obj
