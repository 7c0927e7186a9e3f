"""
Error taxonomy shared by the Prompt Service and the client core.

- ValidationError: a required field is blank or malformed. Never retried.
- NotFoundError: a stale id was referenced.
- ServiceUnavailable: the backend or network failed. Reads fall back to the
  local snapshot, writes keep their optimistic local state.
"""


class PromptLabError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PromptLabError):
    status_code = 400


class NotFoundError(PromptLabError):
    status_code = 404


class ServiceUnavailable(PromptLabError):
    status_code = 503
