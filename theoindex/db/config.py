import os

# Index history, compositions and the screening universe share one database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./theoindex.db")

# SQL echo for debugging job runs
DATABASE_ECHO = os.getenv("DATABASE_ECHO", "").lower() in ("1", "true", "yes")
