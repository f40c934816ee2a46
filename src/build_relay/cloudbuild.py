import asyncio

import aiohttp
from sanic.log import logger

from build_relay.auth import AuthProvider
from build_relay.exceptions import ConfigurationError, TriggerLookupError
from build_relay.models import TriggerMetadata
from build_relay import metrics


class CloudBuild:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        auth: AuthProvider,
        api_url: str = "https://cloudbuild.googleapis.com/v1",
        timeout: float | None = None,
    ):
        self.session = session
        self.auth = auth
        self.api_url = api_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None

    def get_trigger_url(self, project_id: str, trigger_id: str) -> str:
        return f"{self.api_url}/projects/{project_id}/triggers/{trigger_id}"

    async def get_trigger(self, project_id: str, trigger_id: str) -> dict:
        headers = await self.auth.authorization()

        kwargs = {}
        if self._timeout is not None:
            kwargs["timeout"] = self._timeout

        async with self.session.get(
            self.get_trigger_url(project_id, trigger_id), headers=headers, **kwargs
        ) as resp:
            resp.raise_for_status()
            return await resp.json()


async def resolve_trigger(
    client: CloudBuild, project_id: str | None, trigger_id: str | None
) -> TriggerMetadata | None:
    """Look up the trigger that started a build.

    Returns None without calling the API when there is no trigger id. Every
    failure of the lookup itself, including an unknown trigger, raises
    TriggerLookupError.
    """
    if not trigger_id:
        return None

    if not project_id:
        raise TriggerLookupError(
            f"Cannot look up trigger {trigger_id} without a project id"
        )

    logger.debug("Fetching trigger %s of project %s", trigger_id, project_id)
    with metrics.track_trigger_lookup():
        try:
            resource = await client.get_trigger(project_id, trigger_id)
            trigger = TriggerMetadata.from_resource(resource)
        except aiohttp.ClientResponseError as e:
            metrics.trigger_lookups_total.labels("error").inc()
            raise TriggerLookupError(
                f"Trigger lookup for {project_id}/{trigger_id} failed with status {e.status}",
                status=e.status,
            ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError, ConfigurationError) as e:
            metrics.trigger_lookups_total.labels("error").inc()
            raise TriggerLookupError(
                f"Trigger lookup for {project_id}/{trigger_id} failed: {e}"
            ) from e
        except (AttributeError, ValueError) as e:
            metrics.trigger_lookups_total.labels("error").inc()
            raise TriggerLookupError(
                f"Unexpected trigger resource for {project_id}/{trigger_id}: {e}"
            ) from e

    metrics.trigger_lookups_total.labels("found").inc()
    logger.debug(
        "Trigger %s is %s on %s", trigger_id, trigger.name, trigger.branch_name
    )
    return trigger
