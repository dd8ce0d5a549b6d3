"""
Runtime configuration for Comproum.

Values come from the environment (a local .env file is honoured).
"""

import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./comproum.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

# Dashboards poll on this period (seconds)
REFRESH_INTERVAL_SECONDS = float(os.getenv("REFRESH_INTERVAL_SECONDS", "5"))

SESSION_TTL_HOURS = int(os.getenv("SESSION_TTL_HOURS", "24"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

# Postal code lookup (ViaCEP)
ADDRESS_LOOKUP_URL = os.getenv("ADDRESS_LOOKUP_URL", "https://viacep.com.br/ws/{postal_code}/json/")
ADDRESS_LOOKUP_TIMEOUT = float(os.getenv("ADDRESS_LOOKUP_TIMEOUT", "10"))

# Market price advisory
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
PRICE_ADVISOR_TIMEOUT = float(os.getenv("PRICE_ADVISOR_TIMEOUT", "30"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", "8000"))
