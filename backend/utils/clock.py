from datetime import date, datetime
import os

import pytz
from dotenv import load_dotenv

load_dotenv()

LEDGER_TIMEZONE = pytz.timezone(os.getenv("LEDGER_TIMEZONE", "Europe/Stockholm"))


def now() -> datetime:
    """Timezone-aware current time in the ledger's timezone."""
    return datetime.now(LEDGER_TIMEZONE)


def today() -> date:
    return now().date()
