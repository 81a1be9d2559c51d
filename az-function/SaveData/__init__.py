import logging

import azure.functions as func
from shared import ConfigurationError, get_settings, handle_store_request, json_response

logger = logging.getLogger("save_data")


async def main(req: func.HttpRequest) -> func.HttpResponse:
    try:
        settings = get_settings()
    except ConfigurationError as e:
        logger.error("configuration_error", extra={"missing": e.missing, "status": e.status_code})
        return json_response(e.status_code, e.to_payload())
    return await handle_store_request(req, settings)
