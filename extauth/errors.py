from __future__ import annotations


class HandshakeError(RuntimeError):
    code = "handshake_error"
    status_code = 400
    default_description = "Extension authentication failed."

    def __init__(self, description: str | None = None) -> None:
        self.description = description or self.default_description
        super().__init__(self.description)


class MissingParameter(HandshakeError):
    code = "missing_parameter"
    status_code = 400
    default_description = "A required parameter is missing."


class NotFoundOrExpired(HandshakeError):
    code = "not_found_or_expired"
    status_code = 404
    default_description = "Unknown or expired state."


class TokenMismatch(HandshakeError):
    code = "token_mismatch"
    status_code = 401
    default_description = "Authentication token is invalid."


class UpstreamFailure(HandshakeError):
    code = "upstream_failure"
    status_code = 502
    default_description = "An upstream service failed; restart the extension sign-in."


class InvalidCredential(HandshakeError):
    code = "invalid_credential"
    status_code = 401
    default_description = "Credential is invalid or expired."


class BridgeParamsError(HandshakeError):
    code = "invalid_bridge_params"
    status_code = 400
    default_description = "Authentication data is incomplete; please sign in again."
