from fastapi import FastAPI, HTTPException, Request
from langchain_groq import ChatGroq
from slack_bolt import App
from slack_bolt.adapter.fastapi import SlackRequestHandler
from slack_sdk import WebClient

import blocks
from agents.offer_parser import OfferParser, create_offer_parser_agent
from config import Settings, load_settings
from exceptions import NotFoundError, ParseError, ServiceError
from logging_config import setup_logger
from tools.deel_tool import DeelClient
from tools.retry import RetryPolicy
from tools.sheets_tool import HireSheet, open_worksheet
from tools.slack_tool import SlackMessenger
from workflow import OfferWorkflow

# Initialize Logger
logger = setup_logger("API")

PARSE_ERROR_TEXT = (
    "Sorry, I had trouble understanding that. Could you rephrase it? "
    "Format: `/hire @username as role for salary with equity starting date`"
)
GENERIC_ERROR_TEXT = "❌ Sorry, something went wrong while processing the hire. Please try again."


def build_workflow(settings: Settings, client: WebClient) -> OfferWorkflow:
    """Wires the parser and the three adapters from configuration."""
    retry_policy = RetryPolicy(
        max_attempts=settings.retry_max_attempts,
        base_delay=settings.retry_base_delay_seconds,
    )
    llm = ChatGroq(
        model=settings.groq_model,
        temperature=0,
        api_key=settings.groq_api_key,
        timeout=settings.http_timeout_seconds,
        max_retries=settings.retry_max_attempts - 1,
    )
    parser = OfferParser(create_offer_parser_agent(llm), allow_future_years=settings.allow_future_years)

    worksheet = open_worksheet(
        settings.google_sheets_credentials,
        settings.google_sheets_id,
        settings.google_sheets_worksheet,
        timeout=settings.http_timeout_seconds,
    )
    store = HireSheet(worksheet)
    store.ensure_header()

    provisioner = DeelClient(
        settings.deel_client_id,
        settings.deel_client_secret,
        api_base=settings.deel_api_base,
        auth_base=settings.deel_auth_base,
        candidate_link_base=settings.deel_candidate_link_base,
        timeout=settings.http_timeout_seconds,
        retry_policy=retry_policy,
    )
    messenger = SlackMessenger(client, retry_policy=retry_policy)
    return OfferWorkflow(parser, store, messenger, provisioner, default_country=settings.default_country)


def _thread_ts(body):
    message = body.get("message") or {}
    return message.get("thread_ts") or message.get("ts")


def _channel_id(body):
    return (body.get("channel") or {}).get("id") or (body.get("container") or {}).get("channel_id")


def register_handlers(bolt_app, workflow: OfferWorkflow):
    """Attaches the /hire command and the three button actions."""

    @bolt_app.command("/hire")
    def handle_hire_command(ack, command, respond):
        ack()
        logger.info(f"Received /hire from {command.get('user_id')} in {command.get('channel_id')}")
        try:
            record = workflow.start_offer(command.get("text", ""), command["user_id"])
        except ParseError as e:
            logger.warning(f"Could not parse hire command: {e}")
            respond(text=PARSE_ERROR_TEXT, response_type="ephemeral")
            return
        except Exception as e:
            logger.error(f"Error handling hire command: {e}", exc_info=True)
            respond(text="Sorry, I encountered an error processing your request. Please try again.",
                    response_type="ephemeral")
            return

        respond(
            blocks=blocks.confirmation_blocks(record),
            text="Please confirm the hire details",
            response_type="in_channel",
        )

    @bolt_app.action(blocks.CONFIRM_ACTION)
    def handle_confirm(ack, body, client):
        ack()
        channel = _channel_id(body)
        message = body.get("message") or {}
        try:
            outcome = workflow.confirm(
                body["actions"][0]["value"], channel, message.get("ts"), thread_ts=message.get("thread_ts")
            )
            logger.info(f"Confirm finished: {outcome.status} - {outcome.message}")
        except Exception as e:
            logger.error(f"Error in confirm action: {e}", exc_info=True)
            client.chat_postMessage(channel=channel, thread_ts=_thread_ts(body), text=GENERIC_ERROR_TEXT)

    @bolt_app.action(blocks.CANCEL_ACTION)
    def handle_cancel(ack, body, client):
        ack()
        channel = _channel_id(body)
        try:
            outcome = workflow.cancel(body["actions"][0]["value"], channel, (body.get("message") or {}).get("ts"))
            logger.info(f"Cancel finished: {outcome.status}")
        except Exception as e:
            logger.error(f"Error in cancel action: {e}", exc_info=True)
            client.chat_postMessage(
                channel=channel, thread_ts=_thread_ts(body),
                text="❌ Sorry, something went wrong while cancelling the hire. Please try again.",
            )

    @bolt_app.action(blocks.SUBMIT_ACTION)
    def handle_submit_hire_info(ack, body, client):
        ack()
        channel = _channel_id(body)
        try:
            form_values = blocks.read_form_values((body.get("state") or {}).get("values"))
            outcome = workflow.submit_onboarding(
                body["actions"][0]["value"], form_values, channel, (body.get("message") or {}).get("ts")
            )
            logger.info(f"Onboarding submission finished: {outcome.status}")
        except Exception as e:
            logger.error(f"Error processing hire info submission: {e}", exc_info=True)
            client.chat_postMessage(
                channel=channel,
                text="Sorry, there was an error processing your information. Please contact HR for assistance.",
            )

    @bolt_app.error
    def handle_global_error(error, body):
        logger.error(f"Global app error: {error}", exc_info=error)

    return bolt_app


def create_slack_client(settings: Settings) -> WebClient:
    return WebClient(token=settings.slack_bot_token, timeout=settings.http_timeout_seconds)


def create_bolt_app(settings: Settings, workflow: OfferWorkflow = None) -> App:
    bolt_app = App(client=create_slack_client(settings), signing_secret=settings.slack_signing_secret)
    workflow = workflow or build_workflow(settings, bolt_app.client)
    return register_handlers(bolt_app, workflow)


def create_app(settings: Settings = None, workflow: OfferWorkflow = None, bolt_app=None) -> FastAPI:
    """
    Builds the HTTP surface. Raises ConfigurationError when settings are incomplete.
    """
    settings = settings or load_settings()
    if bolt_app is None:
        bolt_app = App(client=create_slack_client(settings), signing_secret=settings.slack_signing_secret)
    workflow = workflow or build_workflow(settings, bolt_app.client)
    register_handlers(bolt_app, workflow)
    slack_handler = SlackRequestHandler(bolt_app)

    app = FastAPI(
        title="Hiring Bot API",
        description="Slack endpoints for the /hire offer and onboarding workflow",
        version="1.0.0",
    )
    app.state.workflow = workflow

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"status": "ok", "service": "Hiring Bot API", "version": "1.0.0"}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/slack/events")
    async def slack_events(req: Request):
        return await slack_handler.handle(req)

    @app.get("/offers/{offer_id}")
    def get_offer_status(offer_id: str):
        """Returns the recorded sheet row for an offer."""
        try:
            row = workflow.status(offer_id)
        except NotFoundError:
            raise HTTPException(status_code=404, detail=f"Offer '{offer_id}' not found")
        except ServiceError as e:
            logger.error(f"Failed to read offer {offer_id}: {e}", exc_info=True)
            raise HTTPException(status_code=502, detail="Record store unavailable")
        return {"status": "success", "offer_id": offer_id, "record": row}

    return app
