"""Process-wide background scheduler. Started and shut down by the FastAPI lifespan in main.py."""
from apscheduler.schedulers.background import BackgroundScheduler

scheduler = BackgroundScheduler(timezone="UTC")
