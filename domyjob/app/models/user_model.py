from sqlalchemy import Column, Integer, String
from ..db.database import Base

class User(Base):
    __tablename__ = 'users'
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    # werkzeug password hash, never the raw password
    password = Column(String, nullable=False)
    email = Column(String, nullable=True)
    name = Column(String, nullable=True)
