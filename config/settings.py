"""
⚙️ GLOBAL SETTINGS
==================
Centralized configuration for the breakout backtester.
Values can be overridden through environment variables or a local .env file.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Base Paths
BASE_DIR = Path(__file__).resolve().parent.parent
LOG_DIR = BASE_DIR / "logs"
DATA_DIR = BASE_DIR / "data"

DATABASE_PATH = Path(os.getenv("DATABASE_PATH", str(DATA_DIR / "storage" / "breakout.db")))

# System Configuration
SYSTEM_CONFIG = {
    "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
    # Local market calendar: a trading day is a calendar day in this zone
    "TIMEZONE": os.getenv("TIMEZONE", "Asia/Kolkata"),
    "LOG_TO_FILE": os.getenv("LOG_TO_FILE", "False").lower() == "true",
}

# Default instrument (NSE: RELIANCE)
DEFAULT_SECURITY_ID = os.getenv("DEFAULT_SECURITY_ID", "2885")
DEFAULT_STOCK_NAME = os.getenv("DEFAULT_STOCK_NAME", "RELIANCE")

# Candle intervals accepted by the store (minutes)
VALID_INTERVALS = ("1", "5", "15", "25", "60")

# Strategy Configuration (Previous-Day Breakout)
STRATEGY_CONFIG = {
    # Exits, in percent of the entry price
    "TARGET_PERCENT": 0.2,
    "STOP_LOSS_PERCENT": 0.2,
    "MAX_PERCENT": 10.0,

    # Capital
    "INITIAL_CAPITAL": 100000.0,
    "MIN_CAPITAL": 1000.0,

    # The simulation runs on 1-minute bars only
    "CANDLE_INTERVAL": "1",
}
