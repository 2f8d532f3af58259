# Database package
from .db import Database
from .models import Base
