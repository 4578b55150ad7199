import os
from dotenv import load_dotenv

load_dotenv(dotenv_path=".env")

# Supabase
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

# Tables
TIMER_STATE_TABLE = os.getenv("TIMER_STATE_TABLE", "timer_state")
SESSIONS_TABLE = os.getenv("SESSIONS_TABLE", "sessions")
USER_SETTINGS_TABLE = os.getenv("USER_SETTINGS_TABLE", "user_settings")

# Countdown loop
TIMER_TICK_SECONDS = float(os.getenv("TIMER_TICK_SECONDS", "1.0"))

# Default phase durations (seconds), overridden per user by user_settings
TIMER_WORK_SECONDS = int(os.getenv("TIMER_WORK_SECONDS", "1500"))
TIMER_SHORT_BREAK_SECONDS = int(os.getenv("TIMER_SHORT_BREAK_SECONDS", "300"))
TIMER_LONG_BREAK_SECONDS = int(os.getenv("TIMER_LONG_BREAK_SECONDS", "900"))
TIMER_LONG_BREAK_EVERY = int(os.getenv("TIMER_LONG_BREAK_EVERY", "4"))

# Session registry: close sessions nobody has used for this long
TIMER_SESSION_IDLE_SECONDS = float(os.getenv("TIMER_SESSION_IDLE_SECONDS", "600"))
TIMER_SESSION_SWEEP_SECONDS = float(os.getenv("TIMER_SESSION_SWEEP_SECONDS", "60"))
