"""
Celery Beat Schedule Configuration

All times UTC. The anomaly sweep runs before daily scoring so newly
flagged days are scored without activity points; standings run after
Sunday's scores exist.
"""

from celery.schedules import crontab

beat_schedule = {
    'anomaly-sweep': {
        'task': 'tasks.run_anomaly_sweep',
        'schedule': crontab(hour=0, minute=15),
    },
    # Scores the previous day
    'recompute-daily-scores': {
        'task': 'tasks.recompute_daily_scores',
        'schedule': crontab(hour=0, minute=30),
    },
    # Closes the previous ISO week: snapshot + tier transition
    'weekly-standings': {
        'task': 'tasks.run_weekly_standings',
        'schedule': crontab(hour=1, minute=10, day_of_week=1),  # Monday
    },
    # Closes the previous month: snapshot only
    'monthly-standings': {
        'task': 'tasks.run_monthly_standings',
        'schedule': crontab(hour=1, minute=20, day_of_month=1),
    },
    'season-lifecycle': {
        'task': 'tasks.run_season_lifecycle',
        'schedule': crontab(minute=0),  # hourly
    },
    'retention-cleanup': {
        'task': 'tasks.run_retention_cleanup',
        'schedule': crontab(hour=3, minute=0, day_of_week=0),  # Sunday
    },
}
