"""Error taxonomy shared by the pipeline, the HTTP API and the CLI.

Each error carries a user-facing message and the HTTP status the API answers
with. Nothing here retries; callers surface the message and let the user act.
"""

from __future__ import annotations

from typing import Optional


class FabricSpecError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def as_payload(self) -> dict:
        return {"error": self.message}


class InputError(FabricSpecError):
    """Missing or invalid user input (image, search code, edits)."""

    status_code = 400


class UpstreamError(FabricSpecError):
    """The model or inventory service was unreachable or answered non-2xx."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        if status_code is not None and 400 <= int(status_code) < 600:
            self.status_code = int(status_code)


class MalformedResponse(FabricSpecError):
    """Model output could not be parsed as the expected JSON object."""

    def __init__(self, message: str, *, raw_text: Optional[str] = None) -> None:
        super().__init__(message)
        self.raw_text = raw_text

    def as_payload(self) -> dict:
        payload = super().as_payload()
        if self.raw_text is not None:
            payload["rawContent"] = self.raw_text
        return payload


class DuplicateKey(FabricSpecError):
    status_code = 409

    def __init__(self, key: str) -> None:
        super().__init__("이미 저장된 원단 스펙입니다.")
        self.key = key

    def as_payload(self) -> dict:
        return {"error": self.message, "key": self.key}


class StoreError(FabricSpecError):
    """The datastore failed during a save; the user retries manually."""


class ReviewNotFound(FabricSpecError):
    status_code = 404

    def __init__(self, session_id: str) -> None:
        super().__init__("분석할 데이터가 없습니다. 다시 시도해주세요.")
        self.session_id = session_id
