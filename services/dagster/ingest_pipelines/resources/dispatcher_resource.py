# =============================================================================
# Dispatcher Resource - Partition task launching
# =============================================================================
# Fires one asynchronous `process_partition_job` run per partition through
# the Dagster GraphQL `launchRun` mutation.
# =============================================================================

from typing import Any, Optional

import httpx
from dagster import ConfigurableResource
from pydantic import Field

from libs.models import PartitionTask

__all__ = ["DagsterDispatcherResource", "PARTITION_JOB_NAME", "partition_run_config"]

PARTITION_JOB_NAME = "process_partition_job"
PARTITION_OP_NAME = "process_partition"

LAUNCH_RUN_MUTATION = """
mutation LaunchPartitionRun($executionParams: ExecutionParams!) {
    launchRun(executionParams: $executionParams) {
        __typename
        ... on LaunchRunSuccess {
            run {
                runId
            }
        }
        ... on RunConfigValidationInvalid {
            errors {
                message
            }
        }
        ... on PythonError {
            message
        }
        ... on Error {
            message
        }
    }
}
"""


def partition_run_config(task: PartitionTask) -> dict[str, Any]:
    """Run config handing ``task`` to the ``process_partition`` op."""
    return {"ops": {PARTITION_OP_NAME: {"config": task.model_dump()}}}


class DagsterDispatcherResource(ConfigurableResource):
    """
    Task Dispatcher bound to the Dagster GraphQL API.

    Attributes:
        graphql_url: Dagster webserver GraphQL endpoint
        repository_location_name: Code location that defines the partition job
        repository_name: Repository name within that location
        timeout_seconds: HTTP timeout per launch request
    """

    graphql_url: str = Field(
        "http://dagster-webserver:3000/graphql",
        description="Dagster GraphQL endpoint",
    )
    repository_location_name: str = Field(
        "ingest_pipelines", description="Code location name"
    )
    repository_name: str = Field("__repository__", description="Repository name")
    timeout_seconds: float = Field(30.0, description="HTTP timeout for launch requests")

    def _execute_query(self, query: str, variables: Optional[dict] = None) -> dict:
        """Execute a GraphQL query."""
        response = httpx.post(
            self.graphql_url,
            json={"query": query, "variables": variables or {}},
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        result = response.json()

        if "errors" in result:
            raise RuntimeError(f"GraphQL error: {result['errors']}")

        return result.get("data", {})

    def dispatch(self, task: PartitionTask) -> str:
        """
        Launch a partition worker run for ``task``.

        Returns:
            The Dagster run id

        Raises:
            RuntimeError: If the launch is rejected
        """
        variables = {
            "executionParams": {
                "selector": {
                    "repositoryLocationName": self.repository_location_name,
                    "repositoryName": self.repository_name,
                    "jobName": PARTITION_JOB_NAME,
                },
                "runConfigData": partition_run_config(task),
                "executionMetadata": {
                    "tags": [
                        {"key": "job_id", "value": task.job_id},
                        {"key": "tenant_id", "value": task.tenant_id},
                        {"key": "partition_id", "value": task.partition_id},
                    ]
                },
            }
        }

        data = self._execute_query(LAUNCH_RUN_MUTATION, variables)
        result = data.get("launchRun", {})

        if result.get("__typename") != "LaunchRunSuccess":
            errors = result.get("errors") or []
            detail = result.get("message") or "; ".join(e.get("message", "") for e in errors)
            raise RuntimeError(
                f"Failed to launch {PARTITION_JOB_NAME} for {task.partition_id}: "
                f"{result.get('__typename')} {detail}".strip()
            )

        return result["run"]["runId"]
