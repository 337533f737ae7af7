"""
HTTP front end for the admission gate. Serves the mutating and validating
AdmissionReview endpoints that the API server calls before persisting a
JsonServer.
"""

# Standard
from typing import Any, Dict, Optional
import base64

# Third Party
from fastapi import FastAPI
from pydantic import BaseModel, ConfigDict, Field
import jsonpatch
import uvicorn

# First Party
import alog

# Local
from . import admission, config, constants
from .resource import JsonServer

log = alog.use_channel("WBHK")

# Messages returned on allowed validation responses
CREATE_VALIDATED = "create validated"
UPDATE_VALIDATED = "update validated"
OPERATION_ALLOWED = "operation allowed"

JSON_PATCH_TYPE = "JSONPatch"
FORBIDDEN_REASON = "Forbidden"

## Wire models #################################################################


class AdmissionRequest(BaseModel):
    """The subset of admission.k8s.io/v1 AdmissionRequest the gate reads"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    uid: str
    operation: str = ""
    object: Optional[Any] = None
    old_object: Optional[Any] = Field(None, alias="oldObject")


class AdmissionStatus(BaseModel):
    code: int
    message: Optional[str] = None
    reason: Optional[str] = None


class AdmissionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uid: str
    allowed: bool
    status: Optional[AdmissionStatus] = None
    patch: Optional[str] = None
    patch_type: Optional[str] = Field(None, alias="patchType")


class AdmissionReview(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_version: str = Field(constants.ADMISSION_API_VERSION, alias="apiVersion")
    kind: str = constants.ADMISSION_KIND
    request: Optional[AdmissionRequest] = None
    response: Optional[AdmissionResponse] = None


## Response builders ###########################################################


def _review(response: AdmissionResponse) -> Dict[str, Any]:
    return AdmissionReview(response=response).model_dump(
        by_alias=True, exclude_none=True
    )


def allowed(uid: str, message: str = "") -> Dict[str, Any]:
    return _review(
        AdmissionResponse(
            uid=uid,
            allowed=True,
            status=AdmissionStatus(code=200, message=message or None),
        )
    )


def denied(uid: str, message: str) -> Dict[str, Any]:
    return _review(
        AdmissionResponse(
            uid=uid,
            allowed=False,
            status=AdmissionStatus(code=403, message=message, reason=FORBIDDEN_REASON),
        )
    )


def errored(uid: str, code: int, message: str) -> Dict[str, Any]:
    return _review(
        AdmissionResponse(
            uid=uid,
            allowed=False,
            status=AdmissionStatus(code=code, message=message),
        )
    )


def patched(uid: str, original: dict, updated: dict) -> Dict[str, Any]:
    """Allowed response carrying the JSONPatch from original to updated. No
    patch is attached when the two are equal.
    """
    patch = jsonpatch.make_patch(original, updated)
    response = AdmissionResponse(
        uid=uid, allowed=True, status=AdmissionStatus(code=200)
    )
    if patch.patch:
        log.debug2("Mutation patch: %s", patch.patch)
        response.patch = base64.b64encode(patch.to_string().encode("utf-8")).decode(
            "utf-8"
        )
        response.patch_type = JSON_PATCH_TYPE
    return _review(response)


## Handlers ####################################################################


def handle_mutate(request: AdmissionRequest) -> Dict[str, Any]:
    """Apply defaulting to request.object"""
    try:
        JsonServer.from_dict(request.object)
    except ValueError as err:
        log.warning("Could not decode object in mutate request %s: %s", request.uid, err)
        return errored(request.uid, 400, str(err))
    return patched(request.uid, request.object, admission.default(request.object))


def handle_validate(request: AdmissionRequest) -> Dict[str, Any]:
    """Dispatch to the validation for request.operation"""
    operation = request.operation.upper()
    if operation == admission.Operation.DELETE.value:
        result = admission.validate_delete()
        return allowed(request.uid, result.reason or OPERATION_ALLOWED)

    try:
        resource = JsonServer.from_dict(request.object)
    except ValueError as err:
        log.warning(
            "Could not decode object in validate request %s: %s", request.uid, err
        )
        return errored(request.uid, 400, str(err))

    if operation == admission.Operation.CREATE.value:
        result = admission.validate_create(resource)
        message = CREATE_VALIDATED
    elif operation == admission.Operation.UPDATE.value:
        try:
            old_resource = JsonServer.from_dict(request.old_object)
        except ValueError as err:
            log.warning(
                "Could not decode oldObject in validate request %s: %s",
                request.uid,
                err,
            )
            return errored(request.uid, 400, str(err))
        result = admission.validate_update(resource, old_resource)
        message = UPDATE_VALIDATED
    else:
        return allowed(request.uid, OPERATION_ALLOWED)

    if not result:
        log.info("Denied %s of %s: %s", operation, resource.name, result.reason)
        return denied(request.uid, result.reason)
    return allowed(request.uid, message)


## App #########################################################################


def create_app() -> FastAPI:
    """Build the FastAPI application serving both admission paths"""
    app = FastAPI(title="jsonserver-operator admission webhook")

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.post(constants.MUTATE_PATH)
    def mutate(review: AdmissionReview):
        if review.request is None:
            return errored("", 400, "AdmissionReview has no request")
        log.debug("Mutate request %s: %s", review.request.uid, review.request.operation)
        return handle_mutate(review.request)

    @app.post(constants.VALIDATE_PATH)
    def validate(review: AdmissionReview):
        if review.request is None:
            return errored("", 400, "AdmissionReview has no request")
        log.debug(
            "Validate request %s: %s", review.request.uid, review.request.operation
        )
        return handle_validate(review.request)

    return app


def serve(app: Optional[FastAPI] = None):
    """Run the webhook server with uvicorn using the webhook section of the
    library config. TLS is enabled when both the cert and key are set.
    """
    app = app or create_app()
    webhook_config = config.webhook
    ssl_kwargs = {}
    if webhook_config.tls_cert_file and webhook_config.tls_key_file:
        ssl_kwargs = {
            "ssl_certfile": webhook_config.tls_cert_file,
            "ssl_keyfile": webhook_config.tls_key_file,
        }
    elif webhook_config.tls_cert_file or webhook_config.tls_key_file:
        log.warning("Both tls_cert_file and tls_key_file are needed for TLS")

    log.info(
        "Serving admission webhook on %s:%d (tls=%s)",
        webhook_config.host,
        webhook_config.port,
        bool(ssl_kwargs),
    )
    uvicorn.run(
        app,
        host=webhook_config.host,
        port=webhook_config.port,
        log_config=None,
        **ssl_kwargs,
    )
