"""Archive downloads over HTTP with bounded retries."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import TracebackType

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from precompile.common.constants import USER_AGENT
from precompile.common.errors import StageError
from precompile.common.fs import ensure_dir

RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})
DOWNLOAD_CHUNK_SIZE = 1024 * 128
PARTIAL_SUFFIX = ".part"
RETRYABLE_TRANSPORT_ERRORS = (
    requests.ConnectionError,
    requests.Timeout,
    requests.exceptions.ChunkedEncodingError,
    requests.exceptions.ContentDecodingError,
)


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 20.0
    read: float = 120.0

    def as_tuple(self) -> tuple[float, float]:
        return (self.connect, self.read)


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    multiplier: float = 1.0
    max_wait: float = 30.0


class HttpRequestError(StageError):
    error_code = "HTTP_ERROR"

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message, stage="fetch")
        self.status = status


class RetryableHttpError(HttpRequestError):
    pass


def _check_status(url: str, response: requests.Response) -> None:
    status = response.status_code
    if status in RETRYABLE_STATUS_CODES:
        raise RetryableHttpError(f"{url} answered {status}, will retry", status=status)
    if status >= 400:
        raise HttpRequestError(f"{url} answered {status}", status=status)


def _copy_body(response: requests.Response, destination: Path) -> int:
    size = 0
    with destination.open("wb") as handle:
        for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
            if not chunk:
                continue
            handle.write(chunk)
            size += len(chunk)
    return size


class HttpClient:
    """Session wrapper used by the fetch stage; one instance per run."""

    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
        user_agent: str = USER_AGENT,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent, "Accept": "*/*"})

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _fetch_once(self, url: str, target_path: Path, headers: dict[str, str] | None, timeout: TimeoutConfig) -> int:
        partial_path = target_path.with_name(target_path.name + PARTIAL_SUFFIX)
        try:
            response = self.session.get(url, headers=headers, timeout=timeout.as_tuple(), stream=True)
        except RETRYABLE_TRANSPORT_ERRORS as exc:
            raise RetryableHttpError(f"could not reach {url}: {exc}") from exc
        except requests.RequestException as exc:
            raise HttpRequestError(f"request for {url} failed: {exc}") from exc

        try:
            _check_status(url, response)
            size = _copy_body(response, partial_path)
            partial_path.replace(target_path)
        except RETRYABLE_TRANSPORT_ERRORS as exc:
            partial_path.unlink(missing_ok=True)
            raise RetryableHttpError(f"download of {url} interrupted: {exc}") from exc
        except (requests.RequestException, OSError) as exc:
            partial_path.unlink(missing_ok=True)
            raise HttpRequestError(f"download of {url} failed: {exc}") from exc
        except BaseException:
            partial_path.unlink(missing_ok=True)
            raise
        finally:
            response.close()
        return size

    def download_file(
        self,
        url: str,
        target_path: Path,
        *,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> int:
        """Stream ``url`` into ``target_path`` and return the number of bytes written.

        Connection errors and retryable statuses are retried up to
        ``retry.max_attempts`` times. ``target_path`` only appears once the whole
        body has been received.
        """
        ensure_dir(target_path.parent)
        effective_timeout = timeout or self.timeout

        @retry(
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=wait_exponential_jitter(initial=self.retry.multiplier, max=self.retry.max_wait, jitter=1.0),
            retry=retry_if_exception_type(RetryableHttpError),
            reraise=True,
        )
        def _attempt() -> int:
            return self._fetch_once(url, target_path, headers, effective_timeout)

        return _attempt()
