import os

# Never let a developer's DATABASE_URL / REDIS_URL leak into the test run.
os.environ.setdefault("HOUSEHOLD_USE_IN_MEMORY_BACKENDS", "1")
