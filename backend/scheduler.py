from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from tasks.ledger_integrity import run_integrity_sweep
from utils.clock import LEDGER_TIMEZONE
import os

INTEGRITY_SWEEP_HOUR = int(os.getenv("LEDGER_INTEGRITY_SWEEP_HOUR", "2"))

scheduler = BackgroundScheduler(timezone=LEDGER_TIMEZONE)

# Read-only check of stored journal entries, nightly in the ledger timezone
scheduler.add_job(
    run_integrity_sweep,
    CronTrigger(hour=INTEGRITY_SWEEP_HOUR, minute=0, timezone=LEDGER_TIMEZONE),
    id='ledger_integrity_sweep',
    replace_existing=True,
)
