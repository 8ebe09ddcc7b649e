"""Bounded fan-out of a job over many targets."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Optional, Sequence

from pydantic import BaseModel

from .config import SshConnectionOptions, Target
from .jobs import Job, SudoPolicy, execute
from .remote import RemoteError, SessionFactory, open_session

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5


class HostResult(BaseModel):
    """Result of running a job on one host."""

    index: int
    host: str
    user: str
    port: int
    success: bool
    exit_code: Optional[int] = None
    output: str = ""
    stderr: str = ""
    error: Optional[str] = None
    duration: float = 0.0

    @property
    def label(self) -> str:
        label = f"{self.user}@{self.host}"
        if self.port != 22:
            label += f":{self.port}"
        return label


def dispatch(
    targets: Sequence[Target],
    job: Job,
    options: SshConnectionOptions,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    sudo: SudoPolicy | None = None,
    session_factory: SessionFactory = open_session,
    on_result: Callable[[HostResult], None] | None = None,
) -> list[HostResult]:
    """Run *job* on every target, at most *concurrency* at a time.

    Each target gets its own session. Results are handed to
    *on_result* from the calling thread in completion order; the
    returned list is in target order.
    """
    if concurrency < 1:
        raise ValueError(
            f"concurrency must be at least 1, got {concurrency}"
        )
    if not targets:
        return []

    policy = sudo if sudo is not None else SudoPolicy()
    workers = min(concurrency, len(targets))
    logger.info(
        "Dispatching to %d host(s), %d at a time", len(targets), workers
    )

    t0 = time.monotonic()
    results: list[HostResult] = []
    with ThreadPoolExecutor(
        max_workers=workers, thread_name_prefix="sshrun"
    ) as executor:
        futures = [
            executor.submit(
                _run_target,
                index,
                target,
                job,
                options,
                policy,
                session_factory,
            )
            for index, target in enumerate(targets)
        ]
        for future in as_completed(futures):
            result = future.result()
            results.append(result)
            if on_result is not None:
                on_result(result)

    ok = sum(1 for r in results if r.success)
    logger.info(
        "Done: %d/%d OK (%.1fs total)",
        ok,
        len(results),
        time.monotonic() - t0,
    )
    return sorted(results, key=lambda r: r.index)


def _run_target(
    index: int,
    target: Target,
    job: Job,
    options: SshConnectionOptions,
    sudo: SudoPolicy,
    session_factory: SessionFactory,
) -> HostResult:
    """Open a session, run the job and close the session."""
    t0 = time.monotonic()

    def failure(error: str) -> HostResult:
        return HostResult(
            index=index,
            host=target.host,
            user=target.user,
            port=target.port,
            success=False,
            error=error,
            duration=time.monotonic() - t0,
        )

    logger.info("%s: connecting", target.label)
    try:
        with session_factory(target, options) as session:
            completed = execute(job, session, target, options, sudo)
    except RemoteError as e:
        logger.info("%s: %s", target.label, e)
        return failure(str(e))
    except Exception as e:
        logger.exception("%s: unexpected failure", target.label)
        return failure(f"unexpected error: {e}")

    success = completed.returncode == 0
    return HostResult(
        index=index,
        host=target.host,
        user=target.user,
        port=target.port,
        success=success,
        exit_code=completed.returncode,
        output=completed.stdout,
        stderr=completed.stderr,
        error=(
            None
            if success
            else f"command exited with status {completed.returncode}"
        ),
        duration=time.monotonic() - t0,
    )
