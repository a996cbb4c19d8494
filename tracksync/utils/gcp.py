"""
Google Cloud Platform utility functions.

Provides helper functions for GCP credentials, project info, and the worker
service URL targeted by Cloud Scheduler.
"""

import os
from functools import lru_cache

import google.auth
import requests
from google.auth.exceptions import DefaultCredentialsError

# Configuration from environment
WORKER_SERVICE_LOCATION = os.getenv("WORKER_SERVICE_LOCATION", "southamerica-east1")
WORKER_SERVICE_NAME = os.getenv("WORKER_SERVICE_NAME", "tracksync-worker")

METADATA_EMAIL_URL = (
    "http://metadata.google.internal/computeMetadata/v1/instance/"
    "service-accounts/default/email"
)


@lru_cache(maxsize=1)
def get_credentials_info() -> tuple[str, str, str]:
    """
    Get service account email, project ID and project number from credentials.

    Returns:
        Tuple of (service_account_email, project_id, project_number); empty
        strings for anything that cannot be determined
    """
    try:
        credentials, project = google.auth.default()
    except DefaultCredentialsError:
        return "", "", ""

    service_account = getattr(credentials, "service_account_email", "") or ""

    # On Cloud Run/GCE, service_account_email is "default" - fetch actual email
    if service_account == "default":
        try:
            resp = requests.get(
                METADATA_EMAIL_URL,
                headers={"Metadata-Flavor": "Google"},
                timeout=2,
            )
            service_account = resp.text if resp.ok else ""
        except requests.RequestException:
            service_account = ""

    project_number = ""
    if project:
        from google.cloud import resourcemanager_v3

        client = resourcemanager_v3.ProjectsClient()
        project_resource = client.get_project(name=f"projects/{project}")
        # Project name format: projects/{project_number}
        project_number = project_resource.name.split("/")[-1]

    return service_account, project or "", project_number


def get_service_account_email() -> str:
    """Get the service account email for OIDC authentication."""
    service_account, _, _ = get_credentials_info()
    return service_account


def get_project_id() -> str:
    """Get the GCP project ID."""
    _, project_id, _ = get_credentials_info()
    return project_id


def get_project_number() -> str:
    """Get the GCP project number."""
    _, _, project_number = get_credentials_info()
    return project_number


@lru_cache(maxsize=1)
def get_worker_service_url() -> str:
    """
    Build the Worker service URL.

    Format: https://{service-name}-{project-number}.{location}.run.app

    Returns:
        Worker service URL

    Raises:
        ValueError: If project number cannot be determined
    """
    project_number = get_project_number()
    if not project_number:
        raise ValueError(
            "Cannot determine project number. "
            "Ensure GOOGLE_CLOUD_PROJECT is set and Cloud Resource Manager API is enabled."
        )

    return f"https://{WORKER_SERVICE_NAME}-{project_number}.{WORKER_SERVICE_LOCATION}.run.app"
