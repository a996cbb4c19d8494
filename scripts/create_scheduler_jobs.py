"""
Create or update the Cloud Scheduler jobs that trigger tracking refreshes.

Two jobs POST to the worker's /tasks/tracking-refresh endpoint:
- baseline: every 15 minutes, 05:00-22:59, Monday to Saturday
- peak: every 15 minutes at interleaved minutes, 15:00-17:59, Monday to Saturday

Without GOOGLE_CLOUD_PROJECT the jobs are only printed.
"""

import json
import logging
import os

from dotenv import load_dotenv
from google.api_core.exceptions import NotFound
from google.cloud import scheduler_v1

from tracksync import config
from tracksync.models.task import RunWindow, TrackingRefreshTask
from tracksync.utils.gcp import get_service_account_email, get_worker_service_url
from tracksync.utils.logging import setup_logging

load_dotenv()
setup_logging("tracksync-scheduler")

PROJECT_ID = os.getenv("GOOGLE_CLOUD_PROJECT", "")
LOCATION = os.getenv("GOOGLE_CLOUD_LOCATION", "southamerica-east1")
ENDPOINT = "/tasks/tracking-refresh"

logger = logging.getLogger(__name__)

SCHEDULES = {
    RunWindow.BASELINE: config.BASELINE_SCHEDULE,
    RunWindow.PEAK: config.PEAK_SCHEDULE,
}


def build_job(
    parent: str,
    window: RunWindow,
    schedule: str,
    worker_url: str,
    service_account: str,
) -> scheduler_v1.Job:
    """Build the scheduler job for one refresh window."""
    body = json.dumps(TrackingRefreshTask(window=window).model_dump(mode="json"))

    oidc_token = None
    if worker_url.startswith("https://") and service_account:
        oidc_token = scheduler_v1.OidcToken(
            service_account_email=service_account,
            audience=worker_url,
        )

    return scheduler_v1.Job(
        name=f"{parent}/jobs/tracking-refresh-{window.value}",
        description=f"Tracking refresh ({window.value} window)",
        schedule=schedule,
        time_zone=config.SCHEDULE_TIME_ZONE,
        http_target=scheduler_v1.HttpTarget(
            uri=f"{worker_url}{ENDPOINT}",
            http_method=scheduler_v1.HttpMethod.POST,
            headers={"Content-Type": "application/json"},
            body=body.encode("utf-8"),
            oidc_token=oidc_token,
        ),
    )


def upsert_job(client: scheduler_v1.CloudSchedulerClient, job: scheduler_v1.Job):
    """Update the job if it exists, create it otherwise."""
    parent = job.name.rsplit("/jobs/", 1)[0]
    try:
        client.get_job(name=job.name)
    except NotFound:
        client.create_job(parent=parent, job=job)
        logger.info("Created scheduler job %s", job.name)
        return

    client.update_job(job=job)
    logger.info("Updated scheduler job %s", job.name)


def main():
    if not PROJECT_ID:
        for window, schedule in SCHEDULES.items():
            print(f"[LOCAL] Would create job tracking-refresh-{window.value}")
            print(f"[LOCAL]   schedule: {schedule} ({config.SCHEDULE_TIME_ZONE})")
            print(f"[LOCAL]   target: POST {ENDPOINT} {{\"window\": \"{window.value}\"}}")
        return

    client = scheduler_v1.CloudSchedulerClient()
    parent = f"projects/{PROJECT_ID}/locations/{LOCATION}"
    worker_url = get_worker_service_url()
    service_account = get_service_account_email()

    for window, schedule in SCHEDULES.items():
        job = build_job(parent, window, schedule, worker_url, service_account)
        upsert_job(client, job)

    print("✅ Scheduler jobs are up to date")


if __name__ == "__main__":
    main()
