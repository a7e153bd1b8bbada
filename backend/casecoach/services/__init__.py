"""Services — identity lifecycle, token issuance, job orchestration, room timers."""
