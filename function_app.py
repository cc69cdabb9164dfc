"""
Integrity Sync Azure Functions App

HTTP and timer triggers for the GitHub Issues <-> Microsoft To Do sync engine.

Endpoints:
- POST /api/github-webhook   GitHub ``issues`` deliveries (HMAC signed)
- GET|POST /api/todo-webhook Graph validation handshake and change notifications
- GET /api/health            Configuration-derived health report
- Timer subscription-renew   Extends Graph subscriptions (every 12 hours by default)

Run with: func start
"""

import azure.functions as func

from integrity_sync.config import get_config
from integrity_sync.health import build_health_report
from integrity_sync.ingestors.results import IngestResult
from integrity_sync.services import build_services
from integrity_sync.utils.json_utils import dumps
from integrity_sync.utils.logger import configure_logging

# Create the Azure Functions app
app = func.FunctionApp()

config = get_config()
logger = configure_logging("integrity_sync")

# Initialize engine services (once per worker process)
services = build_services(config)


def to_http_response(result: IngestResult) -> func.HttpResponse:
    return func.HttpResponse(
        body=result.body,
        status_code=result.status_code,
        mimetype=result.mimetype,
    )


@app.function_name(name="GitHubWebhook")
@app.route(route="github-webhook", methods=["POST"], auth_level=func.AuthLevel.ANONYMOUS)
def github_webhook(req: func.HttpRequest) -> func.HttpResponse:
    """Mirror GitHub issue lifecycle events into Microsoft To Do."""
    result = services.github_ingestor.handle(req.get_body(), dict(req.headers))
    return to_http_response(result)


@app.function_name(name="TodoWebhook")
@app.route(route="todo-webhook", methods=["GET", "POST"], auth_level=func.AuthLevel.ANONYMOUS)
def todo_webhook(req: func.HttpRequest) -> func.HttpResponse:
    """
    Graph change notifications for To Do tasks.

    Answers 202 once every notification is dispatched, without waiting for
    the GitHub calls to finish.
    """
    result = services.todo_ingestor.handle(req.get_body(), dict(req.params))
    return to_http_response(result)


@app.function_name(name="SubscriptionRenew")
@app.timer_trigger(
    schedule=config.subscriptions.schedule, arg_name="timer", run_on_startup=False
)
def subscription_renew(timer: func.TimerRequest) -> None:
    """Extend every configured Graph subscription to the maximum lifetime."""
    if timer.past_due:
        logger.warning("Subscription renewal timer is past due")
    report = services.renewer.renew_all()
    logger.info(
        "Subscription renewal finished",
        extra={"renewed": len(report.renewed), "failed": len(report.failed)},
    )


@app.function_name(name="Health")
@app.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health(req: func.HttpRequest) -> func.HttpResponse:
    return func.HttpResponse(
        body=dumps(build_health_report(config)),
        status_code=200,
        mimetype="application/json",
    )
