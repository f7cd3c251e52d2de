from infrastructure.tasks import celery_app
import infrastructure.tasks.payment_tasks  # noqa: F401 to register tasks


def test_sweeper_is_registered_and_scheduled():
    assert "payments.expire_stale_pending" in celery_app.tasks
    entry = celery_app.conf.beat_schedule["payments-expire-stale-pending"]
    assert entry["task"] == "payments.expire_stale_pending"
    assert entry["kwargs"]["older_than_seconds"] == 900


def test_sweeper_routes_to_maintenance_queue():
    assert celery_app.conf.task_routes["payments.*"] == {"queue": "maintenance"}
