from sanic import Sanic, response
import aiohttp
from aiolimiter import AsyncLimiter
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import ValidationError
from sanic.log import logger

from build_relay.auth import AuthProvider, GoogleAuthProvider, PushTokenVerifier
from build_relay.chat import ChatWebhook
from build_relay.cloudbuild import CloudBuild
from build_relay.config import Config, load_config
from build_relay.exceptions import (
    DecodeError,
    DispatchError,
    PushAuthenticationError,
    TriggerLookupError,
    UnrecoverableError,
)
from build_relay.models import PubSubMessage, PushEnvelope
from build_relay.pipeline import Notifier
from build_relay import metrics


async def handle_pubsub_message(message: PubSubMessage, *, app: Sanic) -> bool:
    logger.debug("Handling message %s", message.messageId)
    return await app.ctx.notifier.handle(message)


def create_app(config: Config | None = None, auth: AuthProvider | None = None):
    if config is None:
        config = load_config()

    app = Sanic("build-relay")
    app.update_config(config.model_dump())
    logger.setLevel(config.OVERRIDE_LOGGING)
    config.print_config()

    # Credentials are discovered once, before any event is accepted.
    app.ctx.auth = auth if auth is not None else GoogleAuthProvider()

    if config.VERIFY_PUSH_TOKEN:
        app.ctx.push_verifier = PushTokenVerifier(
            config.PUSH_AUDIENCE, service_account=config.PUSH_SERVICE_ACCOUNT
        )
    else:
        logger.warning("Push token verification is disabled")
        app.ctx.push_verifier = None

    limiter = AsyncLimiter(10)

    @app.listener("before_server_start")
    async def init(app, loop):
        logger.debug("Creating aiohttp session")
        app.ctx.aiohttp_session = aiohttp.ClientSession()

        app.ctx.notifier = Notifier(
            cloud_build=CloudBuild(
                app.ctx.aiohttp_session,
                app.ctx.auth,
                api_url=app.config.CLOUD_BUILD_API_URL,
                timeout=app.config.OUTBOUND_TIMEOUT,
            ),
            webhook=ChatWebhook(
                app.ctx.aiohttp_session,
                app.config.CHAT_WEBHOOK,
                timeout=app.config.OUTBOUND_TIMEOUT,
            ),
            lookup_fatal=app.config.TRIGGER_LOOKUP_FATAL,
        )

    @app.listener("after_server_stop")
    async def close(app, loop):
        logger.debug("Closing aiohttp session")
        await app.ctx.aiohttp_session.close()

    @app.route("/")
    async def index(request):
        logger.debug("status check")
        return response.text("ok")

    @app.route("/health")
    async def health(request):
        if not limiter.has_capacity():
            return response.text("Rate limited", status=429)
        await limiter.acquire()

        logger.info("Checking health")
        try:
            await app.ctx.auth.authorization()
            logger.info("Credentials ok")
            credentials_ok = True
        except UnrecoverableError as e:
            logger.error("Credentials check failed: %s", e)
            logger.exception(e)
            credentials_ok = False

        status = 200 if credentials_ok else 500
        credentials_str = "ok" if credentials_ok else "not ok"
        return response.text(f"Credentials: {credentials_str}", status=status)

    @app.route("/metrics")
    async def prometheus_metrics(request):
        return response.raw(generate_latest(), content_type=CONTENT_TYPE_LATEST)

    @app.route("/pubsub", methods=["POST"])
    async def pubsub(request):
        logger.debug("Push message received")

        if app.ctx.push_verifier is not None:
            try:
                await app.ctx.push_verifier.verify(request.headers.get("Authorization"))
            except PushAuthenticationError as e:
                metrics.errors_total.labels("auth", type(e).__name__).inc()
                logger.warning("Rejected push request: %s", e)
                return response.text("Push authentication failed", status=e.status)

        try:
            envelope = PushEnvelope.model_validate_json(request.body)
        except ValidationError as e:
            metrics.errors_total.labels("decode", type(e).__name__).inc()
            logger.error("Invalid push envelope: %s", e)
            return response.text("Invalid push envelope", status=400)

        try:
            await handle_pubsub_message(envelope.message, app=app)
        except DecodeError as e:
            logger.error("Could not decode message %s: %s", envelope.message.messageId, e)
            return response.text(str(e), status=400)
        except (TriggerLookupError, DispatchError) as e:
            logger.error("Notification for message %s failed: %s", envelope.message.messageId, e)
            return response.text(str(e), status=502)

        return response.empty()

    return app
