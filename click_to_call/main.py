from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import Depends, FastAPI, Form, Request

from click_to_call.config import get_settings
from click_to_call.workflow import CallOriginationWorkflow

settings = get_settings()

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    logger.info("Starting FreePBX Click-to-Call...")
    app.state.workflow = CallOriginationWorkflow(settings)
    logger.info(f"Using Asterisk AMI at {settings.manager_host}:{settings.manager_port}, "
                f"{len(app.state.workflow.matcher.patterns)} allow-list entries")

    yield

    logger.info("Shutting down FreePBX Click-to-Call...")


app = FastAPI(
    title="FreePBX Click-to-Call",
    description="Originate calls from an extension through the Asterisk Manager Interface",
    lifespan=lifespan
)


def get_workflow(request: Request) -> CallOriginationWorkflow:
    return request.app.state.workflow


@app.get("/")
async def root():
    return {"message": "FreePBX Click-to-Call", "status": "running"}


@app.api_route("/call", methods=["GET", "POST"])
def originate_call(request: Request, exten: str = "", number: str = "",
                   form_exten: Optional[str] = Form(None, alias="exten"),
                   form_number: Optional[str] = Form(None, alias="number"),
                   workflow: CallOriginationWorkflow = Depends(get_workflow)):
    """Originate a call from an extension to a number

    Parameters may be sent in the query string or as a form body; form values win.
    """
    if form_exten is not None:
        exten = form_exten
    if form_number is not None:
        number = form_number
    client_address = request.client.host if request.client else None
    result = workflow.run(exten, number, client_address)
    return result.to_dict()
