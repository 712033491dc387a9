class SuggestionError(Exception):
    """Base class for every typed failure the pipeline surfaces to its caller."""

    code = "suggestion_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(SuggestionError):
    code = "configuration_error"


class InvalidInput(SuggestionError):
    code = "invalid_input"
    status_code = 422


class CatalogUnavailable(SuggestionError):
    """Key rejected or quota exhausted on the video catalog."""

    code = "catalog_unavailable"
    status_code = 503


class CatalogRequestError(SuggestionError):
    code = "catalog_request_error"
    status_code = 502

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class NoCandidates(SuggestionError):
    code = "no_candidates"
    status_code = 404


class OracleResponseInvalid(SuggestionError):
    code = "oracle_response_invalid"
    status_code = 502


class OracleRequestError(SuggestionError):
    code = "oracle_request_error"
    status_code = 502


class NotFound(SuggestionError):
    code = "not_found"
    status_code = 404


class InvalidIdentity(SuggestionError):
    code = "invalid_identity"
    status_code = 422
