"""
Job Queue — Durable background jobs over a list store.

- Producers ENQUEUE named jobs onto a Redis list (in-memory list for dev)
- Workers CONSUME them, retrying failures and dead-lettering exhausted ones
- A scheduler bootstrap job turns cron specs into regular enqueues
"""
