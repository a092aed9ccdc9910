import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    MONGODB_URI             = os.getenv("MONGODB_URI")
    MONGODB_DB              = os.getenv("MONGODB_DB")
    MONGODB_TIMEOUT_MS      = int(os.getenv("MONGODB_TIMEOUT_MS", "5000"))

    HOST                    = os.getenv("HOST", "0.0.0.0")
    PORT                    = int(os.getenv("PORT", "3001"))
    CORS_ORIGINS            = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

    LOG_LEVEL               = os.getenv("LOG_LEVEL", "INFO")

    # None keeps werkzeug's default method
    PASSWORD_HASH_METHOD    = os.getenv("PASSWORD_HASH_METHOD")
